from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .routes_accounts import router as accounts_router
from .routes_auth import router as auth_router
from .routes_brightdata import router as brightdata_router
from .routes_campaigns import router as campaigns_router
from .routes_videos import router as videos_router
from .routes_workers import router as workers_router
from .settings import get_settings

logger = logging.getLogger("app")

app = FastAPI(title="fan-activation")
settings = get_settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(accounts_router)
app.include_router(brightdata_router)
app.include_router(videos_router)
app.include_router(campaigns_router)
app.include_router(workers_router)


@app.on_event("startup")
async def startup_event():
    """Start scheduler on app startup."""
    from app.services.scheduler import scheduler_service
    scheduler_service.configure(settings.async_database_url)
    scheduler_service.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on app shutdown."""
    from app.services.scheduler import scheduler_service
    scheduler_service.stop()
