"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import AggregationMetadata, HistoryResponse, ReadingOut, TimePeriod
from datastore.base import StorageUnavailable, as_utc
from services.cancellation import Deadline, OperationCancelled
from services.series import SeriesService, build_default_service
from services.windows import DEFAULT_WINDOW_RADIUS, MAX_WINDOW_RADIUS, MIN_WINDOW_RADIUS
from settings import get_settings

MAX_LIMIT = 1000
DEFAULT_LIMIT = 50

router = APIRouter()


def get_service() -> SeriesService:
    return build_default_service()


def get_deadline() -> Iterator[Deadline]:
    deadline = Deadline(timeout=get_settings().request_timeout)
    try:
        yield deadline
    finally:
        # Anything still holding the token after the response stops early.
        deadline.cancel()


def _storage_error(exc: Exception) -> HTTPException:
    if isinstance(exc, OperationCancelled):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sensor data storage is unavailable.",
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
def healthcheck() -> dict[str, str]:
    return {"status": "healthy"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
def root() -> dict[str, str]:
    return {"status": "healthy", "detail": "See /health for service status."}


@router.get(
    "/api/temp/latest",
    response_model=ReadingOut,
    summary="Most recent temperature and humidity reading.",
)
def get_latest(
    service: SeriesService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> ReadingOut:
    try:
        reading = service.latest(deadline=deadline)
    except (StorageUnavailable, OperationCancelled) as exc:
        raise _storage_error(exc) from exc
    if reading is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No sensor data has been collected yet.",
        )
    return ReadingOut.from_reading(reading)


@router.get(
    "/api/temp/history",
    response_model=HistoryResponse,
    summary="Sampled history over a time range, or newest-first pages.",
)
def get_history(
    limit: int = Query(DEFAULT_LIMIT, ge=1, description="Points to return (clamped to 1000)."),
    offset: int = Query(0, ge=0),
    term: int = Query(0, ge=0, description="Id stride for paging mode."),
    time_period: Optional[TimePeriod] = Query(None),
    start_time: Optional[datetime] = Query(None),
    end_time: Optional[datetime] = Query(None),
    include_aggregates: bool = Query(False),
    aggregate_window: int = Query(
        DEFAULT_WINDOW_RADIUS, ge=MIN_WINDOW_RADIUS, le=MAX_WINDOW_RADIUS
    ),
    service: SeriesService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> HistoryResponse:
    limit = min(limit, MAX_LIMIT)
    time_mode = time_period is not None or start_time is not None or end_time is not None

    try:
        if not time_mode:
            if term > 0:
                readings = service.stride(limit, term, deadline=deadline)
            else:
                readings = service.page(limit, offset, deadline=deadline)
            return HistoryResponse(
                data=[ReadingOut.from_reading(reading) for reading in readings],
                limit=limit,
                offset=offset,
                term=term,
            )

        end = as_utc(end_time) if end_time is not None else datetime.now(timezone.utc)
        if start_time is not None:
            start = as_utc(start_time)
        else:
            start = end - (time_period or TimePeriod.day).span
        if end < start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_time must not be before start_time.",
            )

        result = service.build_series(
            start,
            end,
            limit,
            include_aggregates,
            aggregate_window,
            deadline=deadline,
        )
    except (StorageUnavailable, OperationCancelled) as exc:
        raise _storage_error(exc) from exc

    return HistoryResponse(
        data=[ReadingOut.from_point(point) for point in result.points],
        limit=limit,
        offset=offset,
        term=term,
        time_period=time_period,
        start_time=start,
        end_time=end,
        total_count=result.total_count,
        returned_count=result.returned_count,
        aggregation=AggregationMetadata(
            enabled=include_aggregates,
            window_size=aggregate_window,
        ),
    )
