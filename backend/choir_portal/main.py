"""FastAPI app: CORS, security headers, error rendering, routers."""
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from choir_portal.core.config import get_settings
from choir_portal.core.deps import require_metrics_access
from choir_portal.core.errors import LibraryError
from choir_portal.core.metrics import get_metrics
from choir_portal.core.request_logging import RequestLoggingMiddleware
from choir_portal.services.storage import ObjectStore, get_object_store
from choir_portal.api.auth import router as auth_router
from choir_portal.api.blobs import router as blobs_router
from choir_portal.api.files import router as files_router
from choir_portal.api.public import router as public_router

logger = logging.getLogger(__name__)

settings = get_settings()
if settings.log_json:
    request_logger = logging.getLogger("choir_portal.request")
    for h in request_logger.handlers[:]:
        request_logger.removeHandler(h)
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("%(message)s"))
    request_logger.addHandler(h)
    request_logger.setLevel(logging.INFO)

app = FastAPI(title=settings.app_name)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", settings.csrf_header_name],
)


@app.middleware("http")
async def security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'none';"
    response.headers["Permissions-Policy"] = "accelerometer=(), camera=(), geolocation=(), microphone=(), payment=(), usb=()"
    return response


# ----- Errors render as {"error": "..."} -----


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(x) for x in first.get("loc", ()) if x != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"error": f"{loc}: {message}" if loc else message})


app.include_router(auth_router, prefix="/api")
app.include_router(files_router, prefix="/api")
app.include_router(public_router, prefix="/api")
app.include_router(blobs_router, prefix="/api")


@app.get("/healthz")
async def healthz():
    """Liveness: no auth, no storage."""
    return {"status": "ok"}


@app.get("/readyz")
async def readyz(store: ObjectStore = Depends(get_object_store)):
    """Readiness: metadata-only probe against the object store."""
    try:
        await store.exists("readyz-probe")
        return {"status": "ok"}
    except LibraryError as e:
        logger.warning("Readiness probe failed: %s", e.message)
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "error": "object store unreachable"},
        )


@app.get("/metrics", response_class=Response)
async def metrics(_: None = Depends(require_metrics_access)):
    """Prometheus metrics. In prod guard via METRICS_REQUIRE_ADMIN=1 (admin auth) or METRICS_SECRET + X-Metrics-Secret header."""
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)
