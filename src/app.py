"""Notifications FastAPI application.

Serves the notification engine over HTTP: raising events, preference
profiles, push subscriptions, the inbox and maintenance endpoints. Requests
under ``/notifications`` run inside the notifications domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from notifications.domain import notifications
from notifications.utils.logging import configure_logging
from protean.integrations.fastapi import register_exception_handlers

configure_logging()
notifications.init()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let queued channel jobs finish before the process exits
    from notifications.engine import reset_engine

    reset_engine()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Notifications API",
    description="Notification dispatch and preference resolution",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the notifications domain context for its routes."""
    if request.url.path.startswith("/notifications"):
        with notifications.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from notifications.api.routes import router as notifications_router  # noqa: E402

app.include_router(notifications_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"notifications": {"name": notifications.name}},
        }
    )
