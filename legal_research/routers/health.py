from fastapi import APIRouter

from legal_research.core import config
from legal_research.services import kanoon_client as kanoon_service

router = APIRouter()


@router.get("/health")
async def health():
    settings = config.SETTINGS
    client = kanoon_service.KANOON_CLIENT
    return {
        "status": "ok" if settings is not None and client is not None else "degraded",
        "config": {
            "valid": settings is not None,
            "error": str(config.SETTINGS_ERROR) if config.SETTINGS_ERROR else None,
            "api_key_present": bool(settings and settings.indian_kanoon_api_key.get_secret_value()),
        },
        "cache": {
            "enabled": bool(client and client.cache.enabled),
            "entries": len(client.cache) if client else 0,
        },
    }
