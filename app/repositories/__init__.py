"""
Repositories - Camada de acesso a dados.

Este modulo implementa o padrao Repository para desacoplar o motor de
segmentacao e a simulacao de entrega do banco de dados.

Backends:
- SupabaseCustomerStore: producao (tabelas + RPC de contagem)
- InMemoryCustomerStore: simulacao local e testes

Uso:
    from app.repositories import create_store

    store = create_store(settings)
    total = await store.count_matching(compiled)
"""

from .base import CustomerStore, QueryResult
from .entities import Campaign, CampaignStatus, Customer
from .memory import InMemoryCustomerStore
from .supabase_store import SupabaseCustomerStore
from .deps import create_store

__all__ = [
    # Base
    "CustomerStore",
    "QueryResult",
    # Entidades
    "Campaign",
    "CampaignStatus",
    "Customer",
    # Backends
    "InMemoryCustomerStore",
    "SupabaseCustomerStore",
    # Factory
    "create_store",
]
