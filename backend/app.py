"""
FastAPI application -- MAGIC incubator admin API.

Run locally:
    uvicorn backend.app:app --reload --port 8000

Create the admin account first with ``python -m backend.setup_admin``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

import config_env
from backend.database import init_db
from backend.errors import AppError, format_validation_errors
from backend.routes import auth, guests, startups

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=getattr(logging, config_env.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    Path(config_env.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    logger.info("Admin API started (uploads in %s)", config_env.UPLOAD_DIR)
    yield


app = FastAPI(
    title="MAGIC Admin API",
    version="1.0.0",
    description="Incubator admin backend -- startups, guests, exports",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config_env.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(startups.router)
app.include_router(guests.router)

app.mount("/uploads", StaticFiles(directory=config_env.UPLOAD_DIR, check_dir=False), name="uploads")


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    return JSONResponse(
        status_code=400,
        content={
            "message": format_validation_errors(errors),
            "errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error", "error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error", "error": str(exc)})


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}
