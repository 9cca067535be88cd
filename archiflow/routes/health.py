from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from ..config import Settings
from ..dependencies import get_settings

router = APIRouter()


@router.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@router.get("/api/health")
def api_health(request: Request, settings: Settings = Depends(get_settings)):
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "firebase": "connected" if request.app.state.database is not None else "not configured",
        "ai": "configured" if settings.openrouter_api_key else "not configured",
    }


@router.get("/api/ai/health")
def ai_health(settings: Settings = Depends(get_settings)):
    return {
        "status": "ok",
        "apiKeyConfigured": bool(settings.openrouter_api_key),
        "audioModel": settings.model_audio,
        "textModel": settings.model_text,
    }
