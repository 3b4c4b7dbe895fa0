"""
Rotas de health check.
"""
from fastapi import APIRouter, Request

from app.core.timezone import agora_utc

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Verifica se a API está funcionando.
    Usado para monitoramento e load balancers.
    """
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "timestamp": agora_utc().isoformat(),
        "service": settings.APP_NAME,
        "store_backend": settings.STORE_BACKEND,
    }
