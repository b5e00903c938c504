"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.schemas import (
    MessageResponse,
    ReadingCreate,
    ReadingListResponse,
    ReadingResponse,
    ReadingUpdate,
    ReconciliationResponse,
    ThresholdResponse,
    ThresholdUpdate,
)
from models.records import ReadingPatch
from services.errors import NotFoundError, ReconciliationFailure, StorageError, ValidationError
from services.monitor import MonitorService, build_default_service
from services.reconciler import ReconciliationReport

router = APIRouter()


def get_service() -> MonitorService:
    return build_default_service()


def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> str:
    """Actor identity supplied by the upstream auth layer."""
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header.",
        )
    return x_actor_id.strip()


def _to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ReconciliationFailure):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": str(exc),
                "threshold": exc.threshold,
                "changed_ids": exc.changed_ids,
                "stale_ids": exc.failed_ids,
            },
        )
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def _report_response(report: ReconciliationReport) -> ReconciliationResponse:
    return ReconciliationResponse(
        threshold=report.threshold.value,
        visited=report.visited,
        changed_ids=report.changed_ids,
    )


@router.get(
    "/water-levels",
    response_model=ReadingListResponse,
    summary="List all water level records, newest first.",
)
async def list_readings(
    service: MonitorService = Depends(get_service),
) -> ReadingListResponse:
    readings = service.list_readings()
    return ReadingListResponse(count=len(readings), data=readings)


@router.get(
    "/water-levels/alerts",
    response_model=ReadingListResponse,
    summary="List records above the critical threshold, newest first.",
)
async def list_alert_readings(
    service: MonitorService = Depends(get_service),
) -> ReadingListResponse:
    alerts = service.list_alert_readings()
    return ReadingListResponse(count=len(alerts), data=alerts)


@router.post(
    "/water-levels",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingResponse,
    summary="Record a water level reading.",
)
async def record_reading(
    payload: ReadingCreate,
    actor_id: str = Depends(get_actor_id),
    service: MonitorService = Depends(get_service),
) -> ReadingResponse:
    try:
        reading = service.record_reading(
            payload.level,
            actor_id,
            timestamp=payload.timestamp,
            notes=payload.notes,
        )
    except (ValidationError, StorageError) as exc:
        raise _to_http_error(exc) from exc
    return ReadingResponse(data=reading)


@router.get(
    "/water-levels/{reading_id}",
    response_model=ReadingResponse,
    summary="Fetch a single water level record.",
)
async def get_reading(
    reading_id: str,
    service: MonitorService = Depends(get_service),
) -> ReadingResponse:
    try:
        reading = service.readings.get(reading_id)
    except NotFoundError as exc:
        raise _to_http_error(exc) from exc
    return ReadingResponse(data=reading)


@router.put(
    "/water-levels/{reading_id}",
    response_model=ReadingResponse,
    summary="Update level, timestamp or notes of a record.",
)
async def update_reading(
    reading_id: str,
    payload: ReadingUpdate,
    _actor_id: str = Depends(get_actor_id),
    service: MonitorService = Depends(get_service),
) -> ReadingResponse:
    patch = ReadingPatch.from_mapping(payload.model_dump(exclude_unset=True))
    try:
        reading = service.update_reading(reading_id, patch)
    except (ValidationError, NotFoundError, StorageError) as exc:
        raise _to_http_error(exc) from exc
    return ReadingResponse(data=reading)


@router.delete(
    "/water-levels/{reading_id}",
    response_model=MessageResponse,
    summary="Delete a water level record.",
)
async def delete_reading(
    reading_id: str,
    _actor_id: str = Depends(get_actor_id),
    service: MonitorService = Depends(get_service),
) -> MessageResponse:
    try:
        service.delete_reading(reading_id)
    except (NotFoundError, StorageError) as exc:
        raise _to_http_error(exc) from exc
    return MessageResponse(message="Water level record deleted successfully")


@router.get(
    "/settings",
    response_model=ThresholdResponse,
    summary="Fetch the critical threshold, creating the default if absent.",
)
async def get_threshold(
    service: MonitorService = Depends(get_service),
) -> ThresholdResponse:
    try:
        threshold = service.get_threshold()
    except StorageError as exc:
        raise _to_http_error(exc) from exc
    return ThresholdResponse(data=threshold)


@router.put(
    "/settings/threshold",
    response_model=ThresholdResponse,
    summary="Change the critical threshold and re-evaluate every record.",
)
async def set_threshold(
    payload: ThresholdUpdate,
    actor_id: str = Depends(get_actor_id),
    service: MonitorService = Depends(get_service),
) -> ThresholdResponse:
    try:
        report = service.set_threshold(payload.critical_threshold, actor_id)
    except (ValidationError, ReconciliationFailure, StorageError) as exc:
        raise _to_http_error(exc) from exc
    return ThresholdResponse(data=report.threshold)


@router.post(
    "/settings/reconcile",
    response_model=ReconciliationResponse,
    summary="Re-run alert reconciliation against the stored threshold.",
)
async def reconcile(
    _actor_id: str = Depends(get_actor_id),
    service: MonitorService = Depends(get_service),
) -> ReconciliationResponse:
    try:
        report = service.reconcile()
    except (ReconciliationFailure, StorageError) as exc:
        raise _to_http_error(exc) from exc
    return _report_response(report)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
