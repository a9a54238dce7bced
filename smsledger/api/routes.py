"""FastAPI endpoints for the SMS ledger sync API.

This module defines the routes for starting a sync over the configured message source, uploading an inbox export,
checking job status, previewing how a single message is parsed, and health checks. It wires together the message
sources, the parsing pipeline and the sync job runner.
"""

import uuid
from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, UploadFile
from sqlalchemy.orm import Session

from smsledger.api.dependencies import (
    get_db_conn,
    get_message_source,
    get_preferences_store,
    get_session_factory,
    get_settings,
)
from smsledger.core.db import JobStore
from smsledger.core.models import JobStatus, ParsePreview, ParseRequest
from smsledger.core.settings import Settings
from smsledger.core.utils import get_logger
from smsledger.parsing.categorizer import categorize
from smsledger.parsing.extractor import extract
from smsledger.services.dedup import fingerprint
from smsledger.services.ledger import PreferencesStore
from smsledger.services.message_source import CsvMessageSource, MessageSource
from smsledger.workers.sync_runner import run_sync_job

router = APIRouter()
logger = get_logger("sms-ledger.api")

JOB_ACCEPTED_EXAMPLE = {"job_id": "123e4567-e89b-12d3-a456-426614174000"}


def _start_job(
    background_tasks: BackgroundTasks,
    db: JobStore,
    source: MessageSource,
    settings: Settings,
    session_factory: Callable[[], Session],
) -> dict:
    job_id = str(uuid.uuid4())
    db.create_job(job_id, source.name)
    background_tasks.add_task(run_sync_job, job_id, source, settings, session_factory)
    logger.info(f"Background sync job started: job_id={job_id}, source={source.name}")
    return {"job_id": job_id}


@router.post(
    "/sync",
    status_code=202,
    summary="Start a sync of the configured message source into the ledger",
    description=(
        "Start a background job that reads the most recent inbox messages from the configured message source, "
        "extracts transactions and writes new ones to the ledger. Already-recorded transactions are skipped, "
        "so repeated syncs are safe.\n\n"
        "**Response:**\n"
        "- 202 Accepted: `{ 'job_id': '<uuid>' }`.\n"
        "- 500 Internal Server Error: On unexpected errors."
    ),
    response_description="Job accepted. Returns job_id.",
    responses={
        202: {
            "description": "Job accepted. Returns job_id.",
            "content": {"application/json": {"example": JOB_ACCEPTED_EXAMPLE}},
        },
        500: {"description": "Internal server error."},
    },
)
async def start_sync(
    background_tasks: BackgroundTasks,
    source: MessageSource = Depends(get_message_source),
    db: JobStore = Depends(get_db_conn),
    settings: Settings = Depends(get_settings),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> dict:
    """Start a sync job over the configured message source."""
    logger.info(f"Received sync request: source={source.name}")
    return _start_job(background_tasks, db, source, settings, session_factory)


@router.post(
    "/upload-messages",
    status_code=202,
    summary="Upload an inbox export CSV and start a sync job over it",
    description=(
        "Upload a CSV inbox export with sender (`address`), `body` and timestamp (`date`) columns. "
        "An optional `type` column restricts the sync to inbox rows.\n\n"
        "**Request:**\n"
        "- Content-Type: multipart/form-data\n"
        "- Form field: `file` (CSV file)\n\n"
        "**Response:**\n"
        "- 202 Accepted: `{ 'job_id': '<uuid>' }` if upload is successful.\n"
        "- 400 Bad Request: If the file is not a CSV."
    ),
    response_description="Job accepted. Returns job_id.",
    responses={
        202: {
            "description": "Job accepted. Returns job_id.",
            "content": {"application/json": {"example": JOB_ACCEPTED_EXAMPLE}},
        },
        400: {
            "description": "Only CSV files accepted.",
            "content": {"application/json": {"example": {"detail": "Only CSV files accepted"}}},
        },
    },
)
async def upload_messages(
    background_tasks: BackgroundTasks,
    file: UploadFile,
    db: JobStore = Depends(get_db_conn),
    settings: Settings = Depends(get_settings),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> dict:
    """Upload an inbox export and start a sync job over its messages."""
    logger.info(f"Received upload request: filename={file.filename}")
    if not file.filename or not file.filename.lower().endswith(".csv"):
        logger.warning(f"Rejected file (not CSV): {file.filename}")
        raise HTTPException(400, "Only CSV files accepted")
    data = await file.read()
    return _start_job(background_tasks, db, CsvMessageSource(data=data), settings, session_factory)


@router.get(
    "/status/{job_id}",
    response_model=JobStatus,
    summary="Get sync job status",
    description=(
        "Check the status and counters of a sync job by job_id.\n\n"
        "**Path parameter:**\n"
        "- `job_id`: The job identifier returned by /sync or /upload-messages.\n\n"
        "**Response:**\n"
        "- 200 OK: Returns job status, timestamps, progress counters, and error if any.\n"
        "- 404 Not Found: If the job_id does not exist."
    ),
    response_description="Job status and counters.",
    responses={
        200: {
            "description": "Job found.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "completed",
                        "created_at": "2026-02-12T08:30:49Z",
                        "completed_at": "2026-02-12T08:30:50Z",
                        "error": None,
                        "total": 5,
                        "processed": 5,
                        "added": 4,
                        "failed": 0,
                    },
                },
            },
        },
        404: {
            "description": "Job not found.",
            "content": {"application/json": {"example": {"detail": "Job not found"}}},
        },
    },
)
async def get_status(job_id: str, db: JobStore = Depends(get_db_conn)) -> dict:
    """Get the status of a sync job."""
    row = db.get_job_status(job_id)
    if not row:
        raise HTTPException(404, "Job not found")
    return row


@router.post(
    "/parse",
    response_model=ParsePreview,
    summary="Preview how a single message is parsed",
    description=(
        "Run one message through extraction, categorization and fingerprinting without writing to the ledger. "
        "`transaction` is null when the message is not a recognizable financial event."
    ),
    response_description="Parsed transaction, category and fingerprint.",
)
async def parse_message(
    request: ParseRequest,
    preferences: PreferencesStore = Depends(get_preferences_store),
    settings: Settings = Depends(get_settings),
) -> ParsePreview:
    """Parse a single message and return the preview."""
    prefs = preferences.load()
    parsed = extract(request.sender, request.body, request.timestamp, prefs.bank_accounts)
    if parsed is None:
        return ParsePreview()
    return ParsePreview(
        transaction=parsed,
        category=categorize(parsed),
        fingerprint=fingerprint(parsed, settings.dedup_window_ms),
    )


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
