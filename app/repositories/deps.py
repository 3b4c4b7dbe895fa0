"""
Factory do backend de dados.

O backend e escolhido por STORE_BACKEND e construido explicitamente no
startup da aplicacao (ver app.main); nao existe instancia global.

Uso em testes:
    from app.repositories.memory import InMemoryCustomerStore

    store = InMemoryCustomerStore(customers=[...])
"""
import logging

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.services.supabase import create_supabase_circuit, create_supabase_client
from .base import CustomerStore
from .memory import InMemoryCustomerStore
from .supabase_store import SupabaseCustomerStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> CustomerStore:
    """
    Cria o CustomerStore configurado.

    Raises:
        ConfigurationError: Backend desconhecido ou Supabase sem credenciais
    """
    backend = settings.STORE_BACKEND.lower()

    if backend == "memory":
        logger.info("Usando backend em memoria")
        return InMemoryCustomerStore()

    if backend == "supabase":
        client = create_supabase_client(settings)
        return SupabaseCustomerStore(client, create_supabase_circuit(settings))

    raise ConfigurationError(
        f"STORE_BACKEND desconhecido: {settings.STORE_BACKEND}",
        details={"allowed": ["supabase", "memory"]},
    )
