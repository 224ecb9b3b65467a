"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from app.schemas import Alert, IngestResponse, Reading
from services.errors import MissingFieldsError, NotFoundError, StoreError
from services.pipeline import IngestionPipeline, build_default_pipeline
from services.query import DEFAULT_HISTORY_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline() -> IngestionPipeline:
    return build_default_pipeline()


def _server_error(exc: StoreError) -> HTTPException:
    logger.error("Store failure: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Server error",
    )


@router.post(
    "/api/water-level",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestResponse,
    summary="Receive a tank reading from a device.",
)
async def ingest_reading(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> IngestResponse:
    try:
        payload: Any = await request.json()
    except ValueError:
        # Malformed JSON carries no usable fields.
        payload = None
    body = payload if isinstance(payload, Mapping) else {}
    try:
        outcome = await run_in_threadpool(pipeline.submit_payload, body)
    except MissingFieldsError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        raise _server_error(exc) from exc
    return IngestResponse(reading=outcome.reading)


@router.get(
    "/api/water-level/latest/{device_id}",
    response_model=Reading,
    summary="Most recent reading for a device.",
)
def get_latest_reading(
    device_id: str,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Reading:
    try:
        return pipeline.queries.latest(device_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreError as exc:
        raise _server_error(exc) from exc


@router.get(
    "/api/water-level/history/{device_id}",
    response_model=List[Reading],
    summary="Recent readings for a device, newest first.",
)
def get_reading_history(
    device_id: str,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=500),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> List[Reading]:
    try:
        return pipeline.queries.history(device_id, limit)
    except StoreError as exc:
        raise _server_error(exc) from exc


@router.get(
    "/api/alert/latest/{device_id}",
    response_model=Alert,
    summary="Most recent low-level alert for a device.",
)
def get_latest_alert(
    device_id: str,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Alert:
    try:
        return pipeline.queries.latest_alert(device_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreError as exc:
        raise _server_error(exc) from exc


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
