"""
Motor de audiencia - API Principal
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.error_handlers import register_exception_handlers
from app.api.routes import campaigns, health
from app.core.config import Settings, get_settings
from app.core.logging import setup_logging
from app.services.campaigns import CampaignService, build_campaign_service

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[CampaignService] = None,
) -> FastAPI:
    """
    Monta a aplicação.

    Args:
        settings: Configurações (default: get_settings())
        service: Serviço já construído (testes); senão é montado no startup
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gerencia startup e shutdown da aplicação."""
        setup_logging(settings)
        logger.info(f"Iniciando {settings.APP_NAME} (store={settings.STORE_BACKEND})...")
        if getattr(app.state, "campaign_service", None) is None:
            app.state.campaign_service = build_campaign_service(settings)
        yield
        logger.info(f"Encerrando {settings.APP_NAME}...")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Segmentação de clientes, estimativa de audiência e simulação de campanhas",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.campaign_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Ajustar em produção
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(campaigns.router)

    @app.get("/")
    async def root():
        """Endpoint raiz."""
        return {
            "app": settings.APP_NAME,
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()
