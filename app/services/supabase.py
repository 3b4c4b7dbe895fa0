"""
Cliente Supabase para operacoes de banco de dados.

O cliente é criado explicitamente a partir das configurações e injetado
nos repositories; nenhum cliente com credencial vive em escopo de módulo.
"""
import asyncio
import logging
from typing import Any, Callable

from supabase import create_client, Client

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client:
    """
    Cria cliente Supabase com a service key.

    Raises:
        ConfigurationError: Se URL ou service key nao estiverem configuradas
    """
    if not settings.supabase_configured:
        raise ConfigurationError(
            "SUPABASE_URL e SUPABASE_SERVICE_KEY sao obrigatorios",
            details={"store_backend": settings.STORE_BACKEND},
        )

    logger.info("Criando cliente Supabase")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)


def create_supabase_circuit(settings: Settings) -> CircuitBreaker:
    """Circuit breaker dedicado às chamadas do Supabase."""
    return CircuitBreaker(
        name="supabase",
        failure_threshold=5,
        timeout_seconds=settings.SUPABASE_TIMEOUT_SECONDS,
        reset_seconds=30,
    )


async def run_with_circuit(circuit: CircuitBreaker, func: Callable[[], Any]) -> Any:
    """
    Executa função síncrona do Supabase com circuit breaker.

    O client do Supabase é síncrono, por isso roda no executor padrão.

    Raises:
        CircuitOpenError: Se Supabase está indisponível
        asyncio.TimeoutError: Se a chamada exceder o timeout do circuit
    """
    async def _async_wrapper():
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    return await circuit.call(_async_wrapper)
