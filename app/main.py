import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from .core.access_gate import AccessGateMiddleware
from .core.config import get_settings
from .core.security import get_identity_resolver
from .routers import health, social_share, uploads, videos

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.state.identity_resolver = get_identity_resolver()

# CORS is added last so it stays the outermost layer around gate responses
app.add_middleware(
    AccessGateMiddleware,
    routes=settings.route_table(),
    api_unauthorized=settings.gate_api_unauthorized,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(uploads.router, prefix=settings.api_prefix)
app.include_router(videos.router, prefix=settings.api_prefix)
app.include_router(social_share.router, prefix=settings.api_prefix)

if settings.media_backend == "local" and settings.media_base_url.startswith("/"):
    app.mount(settings.media_base_url, StaticFiles(directory=settings.resolved_media_root), name="media")


@app.exception_handler(HTTPException)
async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "Invalid request", "details": jsonable_encoder(exc.errors())}, status_code=400)


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal Server Error"}, status_code=500)
