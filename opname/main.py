"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from opname.api import auth, websocket
from opname.api import opname as opname_api
from opname.config import get_settings
from opname.services.exceptions import OpnameError, UnresolvedDiscrepanciesError

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logging.basicConfig(
        level=logging.DEBUG if settings.is_development else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    yield


app = FastAPI(
    title="Stock Opname API",
    description="Physical stock reconciliation: snapshot, scan, resolve and lock",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8080",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(OpnameError)
async def opname_error_handler(request: Request, exc: OpnameError) -> JSONResponse:
    """Answer rejected opname operations with their typed reason."""
    content: dict = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, UnresolvedDiscrepanciesError):
        content["missing_item_ids"] = exc.missing_item_ids
        content["unregistered_item_ids"] = exc.unregistered_item_ids
    return JSONResponse(status_code=exc.status_code, content=content)


# Register routers
app.include_router(auth.router)
app.include_router(opname_api.router)
app.include_router(websocket.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
