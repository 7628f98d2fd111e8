from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from storysquad.config import settings
from storysquad.errors import AppError
from storysquad.logging_setup import configure_logging
from storysquad.routes.system import router as system_router
from storysquad.routes.auth import router as auth_router
from storysquad.routes.sections import router as sections_router
from storysquad.routes.rumbles import router as rumbles_router
from storysquad.routes.submissions import router as submissions_router
from storysquad.routes.contest import router as contest_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for classroom writing rumbles",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(sections_router)
app.include_router(rumbles_router)
app.include_router(submissions_router)
app.include_router(contest_router)

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.error("request_failed", error=type(exc).__name__, detail=exc.message, path=request.url.path)
    else:
        log.info("request_rejected", error=type(exc).__name__, status=exc.status_code, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
