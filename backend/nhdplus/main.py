import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
import uvicorn

from .discover import resolve_target
from .models import (
    BoxQueryRequest,
    DiscoverRequest,
    DiscoverResponse,
    ErrorResponse,
    FeatureCollection,
    HealthResponse,
    IdQueryRequest,
    LayersResponse,
)
from .settings import LOG_LEVEL, MAX_IDS_PER_REQUEST
from .utils.logging import get_logger, request_context, setup_logging
from .wfs import BOX_LAYERS, ID_LAYER_FIELDS, get_nhdplus_bybox, get_nhdplus_byid

VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-ID"

setup_logging(LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(
    title="NHDPlus Discovery API",
    description="NHDPlus WFS queries and COMID discovery",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Time each request and tag everything it logs with one request id."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    start_time = datetime.now(timezone.utc)

    with request_context(request_id):
        logger.info(
            f"{request.method} {request.url.path}",
            extra={'query': str(request.url.query) or None}
        )

        response = await call_next(request)
        duration = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={'status_code': response.status_code, 'duration_ms': round(duration, 2)}
        )

    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _error_response(request: Request, status_code: int, error: str,
                    detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            request_id=getattr(request.state, 'request_id', None),
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(ValueError)
async def input_error_handler(request: Request, exc: ValueError):
    """Bad layers, identifiers, CRSs and NLDI references are the caller's fault."""
    logger.info(f"Rejected input: {exc}")
    return _error_response(request, 400, str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(
        request, 500, "Internal server error",
        detail=str(exc) if LOG_LEVEL == "DEBUG" else None,
    )


@app.get("/healthz", response_model=HealthResponse)
def health_check():
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION
    )


@app.get("/api/nhdplus/layers", response_model=LayersResponse)
def nhdplus_layers():
    """Layers accepted by the id and bounding-box queries."""
    return LayersResponse(
        byid=[layer.value for layer in ID_LAYER_FIELDS],
        bybox=[layer.value for layer in BOX_LAYERS],
    )


@app.post("/api/nhdplus/discover", response_model=DiscoverResponse)
def discover(request: DiscoverRequest):
    """Resolve a point or NLDI feature reference to an NHDPlus COMID."""
    return DiscoverResponse(comid=resolve_target(request.target))


@app.post("/api/nhdplus/byid")
def nhdplus_by_id(request: IdQueryRequest):
    """Features of a layer matching a set of identifiers."""
    if not request.ids:
        raise HTTPException(status_code=400, detail="No identifiers provided")

    if len(request.ids) > MAX_IDS_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"Too many identifiers (max {MAX_IDS_PER_REQUEST})"
        )

    return _geojson_response(get_nhdplus_byid(request.ids, request.layer))


@app.post("/api/nhdplus/bybox")
def nhdplus_by_box(request: BoxQueryRequest):
    """Features of a layer intersecting a bounding box."""
    return _geojson_response(get_nhdplus_bybox(request.bbox, request.layer, crs=request.crs))


def _geojson_response(collection: FeatureCollection) -> JSONResponse:
    return JSONResponse(
        content=collection.model_dump(),
        media_type="application/geo+json",
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
