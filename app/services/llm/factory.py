"""
Factory para LLM Providers.

Centraliza criação de providers para facilitar DI e configuração.
"""

import logging
from typing import Optional

from app.core.config import Settings
from app.services.circuit_breaker import CircuitBreaker
from .protocol import LLMProvider
from .anthropic_provider import AnthropicProvider

logger = logging.getLogger(__name__)


def create_llm_provider(settings: Settings) -> Optional[LLMProvider]:
    """
    Cria provider de LLM a partir das configurações.

    Returns:
        AnthropicProvider configurado, ou None quando ANTHROPIC_API_KEY
        está vazia (o adaptador de mensagens usa o fallback fixo).
    """
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("ANTHROPIC_API_KEY ausente, geração de mensagens usará fallback")
        return None

    circuit = CircuitBreaker(
        name="anthropic",
        failure_threshold=3,
        timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
        reset_seconds=30,
    )
    return AnthropicProvider(
        api_key=settings.ANTHROPIC_API_KEY,
        model_id=settings.LLM_MODEL,
        circuit=circuit,
    )
