"""FastAPI application entry point."""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from curriculum.api import concepts, curriculum
from curriculum.container import uses_supabase
from curriculum.core.config import EXPOSE_ERROR_DETAILS
from curriculum.core.logging import get_logger, setup_logging
from curriculum.domain.common.errors import CurriculumError
from curriculum.persistence.db import init_db

logger = get_logger(__name__)

# ------------------------------------------------------------------
# App creation
# ------------------------------------------------------------------
app = FastAPI(
    title="Curriculum Tree API",
    description="Admin API for the curriculum tree and its concepts",
    version="1.0.0",
)

# CORS: allow everything for local dev (restrict for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------------
# Startup: logging + local schema
# ------------------------------------------------------------------
@app.on_event("startup")
def on_startup():
    setup_logging()
    if not uses_supabase():
        init_db()
    logger.info("app_started", store="supabase" if uses_supabase() else "sqlite")


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
@app.exception_handler(CurriculumError)
def handle_curriculum_error(request: Request, exc: CurriculumError) -> JSONResponse:
    payload = exc.to_dict()
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
        if not EXPOSE_ERROR_DETAILS:
            payload = {"message": "Internal server error.", "code": exc.code}
    return JSONResponse(status_code=exc.status_code, content={"error": payload})


# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(curriculum.router)
app.include_router(concepts.router)
