"""
Chronologicon: HTTP API Server
==============================

FastAPI surface over ChronologiconBackend.

Endpoints:
- POST /api/events/ingest                     -> start ingestion from a server path
- POST /api/events/ingest/upload              -> start ingestion from an uploaded .txt
- GET  /api/events/ingestion-status/{job_id}  -> job snapshot
- GET  /api/events/ingestion-jobs             -> job list
- GET  /api/events/search                     -> filtered, paginated search
- GET  /api/events                            -> paginated listing
- POST /api/events                            -> create one event
- GET  /api/timeline/{root_event_id}          -> nested hierarchy
- GET  /api/insights/overlapping-events
- GET  /api/insights/temporal-gaps
- GET  /api/insights/event-influence
- GET  /api/insights/statistics

Usage:
    uvicorn chronologicon.api.server:app --reload
"""
import logging
import os
import secrets
import time
import uuid
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..contracts.base import is_valid_uuid, parse_timestamp
from ..contracts.errors import (
    ConstraintViolation, EventNotFoundError, IngestionStartError,
    JobNotFoundError, QueryValidationError
)
from ..contracts.events import EventDraft, SearchFilters
from ..contracts.jobs import JobStatus
from ..engine import BackendConfig, ChronologiconBackend
from ..observability import configure_logging
from .mapper import (
    map_event_to_dto, map_gap_report_to_dto, map_job_to_dto, map_overlaps_to_dto,
    map_path_to_dto, map_search_page_to_dto, map_statistics_to_dto,
    map_ticket_to_dto, map_timeline_to_dto
)

logger = logging.getLogger(__name__)

# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

# Global Backend Instance
backend_instance: Optional[ChronologiconBackend] = None

UPLOAD_SUFFIX = ".txt"
UPLOAD_CHUNK_BYTES = 1024 * 1024
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the backend on startup unless one was injected."""
    global backend_instance

    configure_logging()

    if backend_instance is None:
        config = BackendConfig.from_env()
        logger.info("Initializing backend (%s storage)", config.storage.backend_type)
        backend_instance = ChronologiconBackend(config)

    yield

    logger.info("Shutting down backend")
    if backend_instance is not None:
        backend_instance.shutdown(wait=False)
    backend_instance = None


app = FastAPI(
    title="Chronologicon Engine API",
    version="1.0.0",
    description="Historical event ingestion and temporal analytics",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed parameters are a 400, not FastAPI's default 422."""
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"detail": message})


def _backend() -> ChronologiconBackend:
    if backend_instance is None:
        raise HTTPException(status_code=503, detail="Backend not initialized")
    return backend_instance


def _timestamp(name: str, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be a valid ISO date")


# =============================================================================
# REQUEST MODELS
# =============================================================================

class IngestRequest(BaseModel):
    filePath: str = Field(..., min_length=1)


class EventCreateRequest(BaseModel):
    event_id: Optional[str] = None
    event_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    start_date: str
    end_date: str
    parent_event_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# ENDPOINTS: HEALTH
# =============================================================================

@app.get("/health")
async def health_check():
    """System status."""
    _backend()
    return {"status": "online", "service": "chronologicon"}


# =============================================================================
# ENDPOINTS: INGESTION
# =============================================================================

def _start(file_path: str) -> Dict[str, Any]:
    try:
        ticket = _backend().start_ingestion(file_path)
    except IngestionStartError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return map_ticket_to_dto(ticket.job_id)


@app.post("/api/events/ingest", status_code=202)
def ingest_from_path(request: IngestRequest):
    """Start ingesting a file that already exists on the server."""
    return _start(request.filePath)


def _max_upload_bytes() -> int:
    return int(os.environ.get("CHRONO_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES))


def _store_upload(source, target: str, limit: int) -> int:
    """Copy the upload to target in chunks, refusing anything over limit bytes."""
    written = 0
    with open(target, "wb") as out:
        while True:
            chunk = source.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            written += len(chunk)
            if written > limit:
                raise HTTPException(
                    status_code=413, detail=f"File exceeds the upload limit of {limit} bytes"
                )
            out.write(chunk)
    return written


@app.post("/api/events/ingest/upload", status_code=202)
def ingest_from_upload(file: UploadFile = File(...)):
    """Store an uploaded .txt file, then ingest it."""
    filename = file.filename or ""
    if not filename.lower().endswith(UPLOAD_SUFFIX) and file.content_type != "text/plain":
        raise HTTPException(status_code=400, detail="Only .txt files are allowed")

    upload_dir = os.environ.get("CHRONO_UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
    os.makedirs(upload_dir, exist_ok=True)
    target = os.path.join(
        upload_dir, f"file-{int(time.time() * 1000)}-{secrets.token_hex(4)}{UPLOAD_SUFFIX}"
    )
    try:
        size = _store_upload(file.file, target, _max_upload_bytes())
        logger.info("Stored upload %s as %s (%d bytes)", filename, target, size)
        return _start(target)
    except HTTPException:
        with suppress(FileNotFoundError):
            os.remove(target)
        raise


@app.get("/api/events/ingestion-status/{job_id}")
def get_ingestion_status(job_id: str):
    try:
        job = _backend().get_job_status(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return map_job_to_dto(job)


@app.get("/api/events/ingestion-jobs")
def list_ingestion_jobs(
    status: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000)
):
    job_status = None
    if status is not None:
        try:
            job_status = JobStatus(status.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown job status: {status}")
    jobs = _backend().list_jobs(status=job_status, limit=limit)
    return {"jobs": [map_job_to_dto(j) for j in jobs], "total": len(jobs)}


# =============================================================================
# ENDPOINTS: EVENTS
# =============================================================================

@app.get("/api/events/search")
def search_events(
    name: Optional[str] = None,
    start_date_after: Optional[str] = None,
    end_date_before: Optional[str] = None,
    sort_by: str = Query("start_date", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100)
):
    try:
        filters = SearchFilters(
            name=name,
            start_date_after=_timestamp("start_date_after", start_date_after),
            end_date_before=_timestamp("end_date_before", end_date_before),
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return map_search_page_to_dto(_backend().search_events(filters))


@app.get("/api/events")
def list_events(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    page_result = _backend().search_events(SearchFilters(page=page, limit=limit))
    return map_search_page_to_dto(page_result)


@app.post("/api/events", status_code=201)
def create_event(request: EventCreateRequest):
    event_id = request.event_id or str(uuid.uuid4())
    for label, value in (("event_id", event_id), ("parent_event_id", request.parent_event_id)):
        if value is not None and not is_valid_uuid(value):
            raise HTTPException(status_code=400, detail=f"{label} must be a valid UUID")

    start = _timestamp("start_date", request.start_date)
    end = _timestamp("end_date", request.end_date)
    if start >= end:
        raise HTTPException(status_code=400, detail="start_date must be before end_date")

    draft = EventDraft(
        event_id=event_id.lower(),
        event_name=request.event_name.strip(),
        start_date=start,
        end_date=end,
        parent_event_id=request.parent_event_id.lower() if request.parent_event_id else None,
        description=request.description or None,
        metadata=request.metadata or {}
    )
    try:
        event = _backend().create_event(draft)
    except ConstraintViolation as e:
        raise HTTPException(status_code=400, detail=e.message)
    return map_event_to_dto(event)


@app.get("/api/timeline/{root_event_id}")
def get_timeline(root_event_id: str):
    if not is_valid_uuid(root_event_id):
        raise HTTPException(status_code=400, detail="Invalid UUID format for root event ID")
    try:
        timeline = _backend().build_timeline(root_event_id)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    return map_timeline_to_dto(timeline)


# =============================================================================
# ENDPOINTS: INSIGHTS
# =============================================================================

@app.get("/api/insights/overlapping-events")
def overlapping_events():
    return map_overlaps_to_dto(_backend().find_overlaps())


@app.get("/api/insights/temporal-gaps")
def temporal_gaps(start_date: str = Query(..., alias="startDate"), end_date: str = Query(..., alias="endDate")):
    window_start = _timestamp("startDate", start_date)
    window_end = _timestamp("endDate", end_date)
    try:
        report = _backend().find_largest_gap(window_start, window_end)
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return map_gap_report_to_dto(report)


@app.get("/api/insights/event-influence")
def event_influence(
    source_event_id: str = Query(..., alias="sourceEventId"),
    target_event_id: str = Query(..., alias="targetEventId")
):
    try:
        result = _backend().shortest_path(source_event_id, target_event_id)
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return map_path_to_dto(result)


@app.get("/api/insights/statistics")
def statistics():
    return map_statistics_to_dto(_backend().statistics())
