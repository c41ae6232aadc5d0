from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.meeting_client.api.v1.routes_system import router as system_router_v1
from src.meeting_client.api.v1.routes_bots import router as bots_router_v1
from src.meeting_client.api.v1.routes_transcript import router as transcript_router_v1
from src.meeting_client.api.v1.routes_meetings import router as meetings_router_v1
from src.meeting_client.api.v1.routes_settings import router as settings_router_v1
from src.meeting_client.config import settings
from src.meeting_client.services.sync.views import transcript_view_service

app = FastAPI(title="Live Meeting Transcription Client API")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Application shutdown hook.

    Disarms the polling task of the open transcript view and closes the HTTP
    connection pool to the transcription service, so no request against a
    stale meeting outlives the process.
    """

    await transcript_view_service.shutdown()


# The browser front end may be served from another origin.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(bots_router_v1, prefix="/api/v1")
app.include_router(transcript_router_v1, prefix="/api/v1")
app.include_router(meetings_router_v1, prefix="/api/v1")
app.include_router(settings_router_v1, prefix="/api/v1")
