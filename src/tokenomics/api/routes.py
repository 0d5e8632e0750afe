"""JSON endpoints: time-series read, indexing trigger, public blob access."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from tokenomics.exceptions import InvalidDaysError, StorageError
from tokenomics.series import DAYS_OPTIONS, build_tokenomics_response, parse_days

log = structlog.get_logger(__name__)

router = APIRouter()
blob_router = APIRouter()

# s-maxage per range: the full history changes least often relative to its size
_CACHE_MAX_AGE = {"all": 3600}
_DEFAULT_CACHE_MAX_AGE = 1800


@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})


@router.get("/tokenomics")
async def get_tokenomics(request: Request, days: str = "30") -> JSONResponse:
    """Most recent ``days`` records reshaped into per-metric series."""
    try:
        day_count = parse_days(days)
    except InvalidDaysError:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid days parameter",
                "message": f"Days parameter must be one of: {', '.join(DAYS_OPTIONS)}",
            },
        )

    records = request.app.state.records
    try:
        result = await records.get_range(day_count)
    except Exception as e:
        log.error("tokenomics_read_unexpected_error", error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": str(e)},
        )

    if not result.success:
        log.error("tokenomics_read_failed", days=days, error=result.error)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Data fetch failed",
                "message": result.error or "Unknown error occurred",
            },
        )

    if not result.data:
        return JSONResponse(
            status_code=404,
            content={"error": "No data found", "message": "No tokenomics data available"},
        )

    body = build_tokenomics_response(result.data, days, request.app.state.token)
    max_age = _CACHE_MAX_AGE.get(days, _DEFAULT_CACHE_MAX_AGE)
    return JSONResponse(
        content=body,
        headers={
            "Cache-Control": f"public, s-maxage={max_age}, stale-while-revalidate=86400"
        },
    )


@router.api_route("/cron/index-data", methods=["GET", "POST"])
async def index_data(request: Request, force: bool = False) -> JSONResponse:
    """Run one indexing pass. 200 when a record is in place, 500 otherwise."""
    indexer = request.app.state.indexer
    outcome = await indexer.run(force=force)
    log.info(
        "index_endpoint_called",
        method=request.method,
        force=force,
        status=outcome.status.value,
    )
    return JSONResponse(status_code=outcome.http_status, content=outcome.to_dict())


@blob_router.get("/blobs/{key:path}")
async def get_blob(request: Request, key: str) -> Response:
    """Public URL target for stored record files."""
    blob_store = request.app.state.blob_store
    try:
        content = await blob_store.get(key)
    except StorageError as e:
        return JSONResponse(status_code=500, content={"error": "Storage error", "message": str(e)})
    if content is None:
        return JSONResponse(status_code=404, content={"error": "Not found", "message": key})
    return Response(content=content, media_type="application/json")
