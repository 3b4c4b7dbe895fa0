"""
Endpoints de segmentacao, simulacao de entrega e geracao de mensagens.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.services.campaigns import CampaignService
from app.services.segmentation.rules import parse_rule_group

router = APIRouter(tags=["campaigns"])
logger = logging.getLogger(__name__)


def get_campaign_service(request: Request) -> CampaignService:
    """Servico montado no startup (app.state.campaign_service)."""
    return request.app.state.campaign_service


class EstimarSegmento(BaseModel):
    operator: str = "AND"
    rules: List[Dict[str, Any]] = Field(default_factory=list)


class SimularEntrega(BaseModel):
    message: Optional[str] = None


class GerarMensagens(BaseModel):
    intent: str


@router.post("/segments/estimate")
async def estimar_segmento(
    dados: EstimarSegmento,
    service: CampaignService = Depends(get_campaign_service),
):
    """Estima o tamanho do segmento (400 para regra invalida)."""
    grupo = parse_rule_group(
        {"operator": dados.operator, "rules": dados.rules},
        max_depth=service.compiler.max_depth,
    )
    total = await service.estimate_audience(grupo)
    return {"count": total}


@router.post("/campaigns/{campaign_id}/simulate")
async def simular_entrega(
    campaign_id: str,
    dados: Optional[SimularEntrega] = None,
    service: CampaignService = Depends(get_campaign_service),
):
    """Simula a entrega da campanha e retorna {sent, failed, total}."""
    message = dados.message if dados else None
    stats = await service.simulate_delivery(campaign_id, message)
    return stats.to_dict()


@router.get("/campaigns/{campaign_id}/stats")
async def estatisticas_campanha(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    """Estatisticas acumuladas das execucoes concluidas."""
    stats = await service.campaign_stats(campaign_id)
    return stats.to_dict()


@router.post("/messages/generate")
async def gerar_mensagens(
    dados: GerarMensagens,
    service: CampaignService = Depends(get_campaign_service),
):
    """Gera mensagens candidatas (fallback fixo se o gerador falhar)."""
    messages = await service.generate_ai_messages(dados.intent)
    return {"messages": messages}
