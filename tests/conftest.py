"""
Configuração global de testes - Fixtures compartilhadas.

Fixtures aqui definidas são automaticamente disponíveis em todos os testes.
Fábricas são expostas como fixtures (criar_cliente, criar_campanha,
flaky_store) para não depender de import entre módulos de teste.
"""

import pytest
from datetime import datetime, timezone

from app.core.config import Settings
from app.core.exceptions import PersistenceError
from app.repositories.entities import Campaign, Customer
from app.repositories.memory import InMemoryCustomerStore


CRIADA_EM = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _criar_cliente(id: str, **kwargs) -> Customer:
    dados = {
        "name": f"Cliente {id}",
        "email": f"{id}@example.com",
        "total_spend": 0.0,
        "visits": 0,
        "last_active_at": None,
    }
    dados.update(kwargs)
    return Customer(id=id, **dados)


def _criar_campanha(id: str = "camp-1", **kwargs) -> Campaign:
    dados = {
        "name": "Campanha de teste",
        "message": "Ola {name}, temos uma oferta!",
        "created_at": CRIADA_EM,
    }
    dados.update(kwargs)
    return Campaign(id=id, **dados)


class FlakyStore(InMemoryCustomerStore):
    """Store em memória que falha no N-ésimo append de log."""

    def __init__(self, *args, fail_on: int = 2, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on = fail_on
        self.append_calls = 0

    async def append_delivery_log(self, log):
        self.append_calls += 1
        if self.append_calls == self.fail_on:
            raise PersistenceError("Falha simulada de escrita")
        return await super().append_delivery_log(log)


@pytest.fixture
def criar_cliente():
    """Fábrica de Customer com valores padrão para os campos omitidos."""
    return _criar_cliente


@pytest.fixture
def criar_campanha():
    """Fábrica de Campaign com valores padrão."""
    return _criar_campanha


@pytest.fixture
def flaky_store():
    """Fábrica de store que falha no append de número `fail_on`."""
    return FlakyStore


@pytest.fixture
def clientes_cenario():
    """Os três clientes do cenário de estimativa (resultado esperado: 1)."""
    return [
        _criar_cliente("c1", total_spend=1200.0, visits=6),
        _criar_cliente("c2", total_spend=500.0, visits=10),
        _criar_cliente("c3", total_spend=2000.0, visits=1),
    ]


@pytest.fixture
def campanha():
    return _criar_campanha()


@pytest.fixture
def store(clientes_cenario, campanha):
    """Store em memória com os clientes do cenário e uma campanha."""
    return InMemoryCustomerStore(customers=clientes_cenario, campaigns=[campanha])


@pytest.fixture
def settings_teste():
    """Settings isoladas do .env local."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        STORE_BACKEND="memory",
        ANTHROPIC_API_KEY="",
        SUPABASE_URL="",
        SUPABASE_SERVICE_KEY="",
    )
