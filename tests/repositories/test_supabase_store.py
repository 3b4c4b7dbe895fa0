"""
Testes para SupabaseCustomerStore.

Usa um fake do client Supabase (chain table().select().eq()...execute()),
sem mocks de import.
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from app.core.exceptions import PersistenceError, QueryError
from app.repositories.entities import CampaignStatus
from app.repositories.supabase_store import SupabaseCustomerStore
from app.services.circuit_breaker import CircuitBreaker
from app.services.delivery.types import DeliveryLog, DeliveryRun, DeliveryStatus, RunStatus
from app.services.segmentation.compiler import compile_rule_group
from app.services.segmentation.rules import Rule, RuleGroup


AGORA = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


class MockTable:
    """Mock para Supabase table chain."""

    def __init__(self, db, name):
        self.db = db
        self.name = name
        self._filters = {}
        self._range = None
        self._limit = None
        self._order = None
        self._write = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._write = ("insert", data, {})
        return self

    def update(self, data):
        self._write = ("update", data, {})
        return self

    def upsert(self, data, **kwargs):
        self._write = ("upsert", data, kwargs)
        return self

    def eq(self, field, value):
        self._filters[field] = value
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def execute(self):
        self.db.queries.append((self.name, dict(self._filters), self._range, self._write, self._order))
        if self.db.should_fail:
            raise Exception("Database error")

        response = MagicMock()
        if self._write is not None:
            acao, data, _ = self._write
            self.db.writes.append((self.name, acao, data, dict(self._filters)))
            response.data = [] if self.db.empty_insert else [{**data, "id": "gen-1"}]
            return response

        rows = [
            row for row in self.db.tables.get(self.name, [])
            if all(row.get(k) == v for k, v in self._filters.items())
        ]
        if self._order is not None:
            coluna, desc = self._order
            rows.sort(key=lambda row: row.get(coluna), reverse=desc)
        if self._range is not None:
            start, end = self._range
            rows = rows[start:end + 1]
        if self._limit is not None:
            rows = rows[:self._limit]
        response.data = rows
        return response


class MockRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpcs.append((self.name, self.params))
        if self.db.should_fail:
            raise Exception("Database error")
        response = MagicMock()
        response.data = self.db.rpc_result
        return response


class MockDatabase:
    """Mock para Supabase client."""

    def __init__(self, tables=None, rpc_result=None, should_fail=False, empty_insert=False):
        self.tables = tables or {}
        self.rpc_result = rpc_result
        self.should_fail = should_fail
        self.empty_insert = empty_insert
        self.queries = []
        self.writes = []
        self.rpcs = []

    def table(self, name):
        return MockTable(self, name)

    def rpc(self, name, params):
        return MockRpc(self, name, params)


def _store(db, **circuit_kwargs):
    return SupabaseCustomerStore(db, CircuitBreaker(name="supabase-test", **circuit_kwargs))


def _log(**kwargs):
    dados = dict(
        campaign_id="camp-1",
        customer_id="c1",
        run_id="run-1",
        status=DeliveryStatus.SENT,
        sent_at=AGORA,
        message="Oi",
    )
    dados.update(kwargs)
    return DeliveryLog(**dados)


class TestClientes:

    @pytest.mark.asyncio
    async def test_list_customers(self):
        db = MockDatabase(tables={"customers": [
            {"id": 1, "name": "Ana", "email": "ana@x.com", "total_spend": "1200.50", "visits": 6,
             "last_active_at": "2024-01-05T10:00:00Z"},
            {"id": 2, "name": None, "email": None, "total_spend": None, "visits": None, "last_active_at": None},
        ]})

        clientes = await _store(db).list_customers()

        assert [c.id for c in clientes] == ["1", "2"]
        assert clientes[0].total_spend == 1200.5
        assert clientes[0].last_active_at == datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)
        assert clientes[1].name == ""
        assert clientes[1].visits == 0

    @pytest.mark.asyncio
    async def test_list_customers_pagina(self):
        linhas = [{"id": i, "total_spend": 0, "visits": 0} for i in range(5)]
        db = MockDatabase(tables={"customers": linhas})
        store = _store(db)
        store.PAGE_SIZE = 2

        clientes = await store.list_customers()

        assert len(clientes) == 5
        assert [q[2] for q in db.queries] == [(0, 1), (2, 3), (4, 5)]

    @pytest.mark.asyncio
    async def test_paginacao_usa_ordem_estavel(self):
        """Linhas fora de ordem no banco nao se repetem nem somem entre paginas."""
        linhas = [{"id": i, "total_spend": 0, "visits": 0} for i in (4, 0, 3, 1, 2)]
        db = MockDatabase(tables={"customers": linhas})
        store = _store(db)
        store.PAGE_SIZE = 2

        clientes = await store.list_customers()

        assert [c.id for c in clientes] == ["0", "1", "2", "3", "4"]
        assert {q[4] for q in db.queries} == {("id", False)}

    @pytest.mark.asyncio
    async def test_linha_malformada(self):
        db = MockDatabase(tables={"customers": [{"id": 1, "total_spend": -5}]})
        with pytest.raises(QueryError):
            await _store(db).list_customers()

    @pytest.mark.asyncio
    async def test_erro_de_banco_vira_query_error(self):
        with pytest.raises(QueryError) as exc:
            await _store(MockDatabase(should_fail=True)).list_customers()
        assert "customers" in exc.value.message


class TestCountMatching:

    @pytest.mark.asyncio
    async def test_chama_rpc_com_parametros_vinculados(self):
        db = MockDatabase(rpc_result=1)
        compiled = compile_rule_group(RuleGroup.all_of(
            Rule("total_spend", ">", 1000),
            Rule("name", "contains", "O'Brien"),
        ))

        total = await _store(db).count_matching(compiled)

        assert total == 1
        [(nome, params)] = db.rpcs
        assert nome == "count_customers_matching"
        assert params["p_params"] == [1000, "O'Brien"]
        assert "O'Brien" not in params["p_where"]

    @pytest.mark.asyncio
    async def test_aceita_escalar_em_lista(self):
        db = MockDatabase(rpc_result=[7])
        compiled = compile_rule_group(RuleGroup.all_of(Rule("visits", ">", 1)))
        assert await _store(db).count_matching(compiled) == 7

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resultado", [None, "7", -1, [1, 2], {"count": 3}])
    async def test_resposta_malformada(self, resultado):
        db = MockDatabase(rpc_result=resultado)
        compiled = compile_rule_group(RuleGroup.all_of(Rule("visits", ">", 1)))
        with pytest.raises(QueryError):
            await _store(db).count_matching(compiled)

    @pytest.mark.asyncio
    async def test_circuito_aberto_vira_query_error(self):
        db = MockDatabase(should_fail=True)
        store = _store(db, failure_threshold=1)
        compiled = compile_rule_group(RuleGroup.all_of(Rule("visits", ">", 1)))

        with pytest.raises(QueryError):
            await store.count_matching(compiled)
        with pytest.raises(QueryError) as exc:
            await store.count_matching(compiled)

        assert "indisponivel" in exc.value.message
        assert len(db.rpcs) == 1


class TestLogsDeEntrega:

    @pytest.mark.asyncio
    async def test_append_insere_e_retorna_gravado(self):
        db = MockDatabase()

        gravado = await _store(db).append_delivery_log(_log())

        [(tabela, acao, dados, _)] = db.writes
        assert (tabela, acao) == ("communication_logs", "insert")
        assert dados["status"] == "SENT"
        assert dados["run_id"] == "run-1"
        assert gravado.id == "gen-1"
        assert gravado.sent_at == AGORA

    @pytest.mark.asyncio
    async def test_append_sem_retorno(self):
        with pytest.raises(PersistenceError):
            await _store(MockDatabase(empty_insert=True)).append_delivery_log(_log())

    @pytest.mark.asyncio
    async def test_append_erro_vira_persistence_error(self):
        with pytest.raises(PersistenceError):
            await _store(MockDatabase(should_fail=True)).append_delivery_log(_log())

    @pytest.mark.asyncio
    async def test_list_delivery_logs_filtra_campanha(self):
        db = MockDatabase(tables={"communication_logs": [
            {**_log().to_db_row(), "id": "1"},
            {**_log(campaign_id="outra").to_db_row(), "id": "2"},
        ]})

        logs = await _store(db).list_delivery_logs("camp-1")

        assert [log.id for log in logs] == ["1"]
        assert db.queries[0][4] == ("id", False)


class TestCampanhasEExecucoes:

    @pytest.mark.asyncio
    async def test_get_campaign(self):
        db = MockDatabase(tables={"campaigns": [{
            "id": "camp-1", "name": "Promo", "message": "Oi", "status": "sending",
            "created_at": "2024-01-10T12:00:00+00:00",
            "rules": {"operator": "AND", "rules": [{"field": "visits", "operator": ">", "value": 1}]},
        }]})

        campanha = await _store(db).get_campaign("camp-1")

        assert campanha.status is CampaignStatus.SENDING
        assert campanha.rule_group().children[0].field == "visits"

    @pytest.mark.asyncio
    async def test_get_campaign_inexistente(self):
        assert await _store(MockDatabase()).get_campaign("x") is None

    @pytest.mark.asyncio
    async def test_update_campaign_status(self):
        db = MockDatabase()

        await _store(db).update_campaign_status("camp-1", CampaignStatus.COMPLETED)

        assert db.writes == [("campaigns", "update", {"status": "completed"}, {"id": "camp-1"})]

    @pytest.mark.asyncio
    async def test_save_delivery_run_faz_upsert(self):
        db = MockDatabase()
        run = DeliveryRun(run_id="run-1", campaign_id="camp-1", status=RunStatus.RUNNING, started_at=AGORA)

        await _store(db).save_delivery_run(run)

        [(tabela, acao, dados, _)] = db.writes
        assert (tabela, acao) == ("delivery_runs", "upsert")
        assert dados["status"] == "running"

    @pytest.mark.asyncio
    async def test_list_delivery_runs(self):
        run = DeliveryRun(run_id="run-1", campaign_id="camp-1", status=RunStatus.COMPLETED, started_at=AGORA)
        db = MockDatabase(tables={"delivery_runs": [run.to_db_row()]})

        assert await _store(db).list_delivery_runs("camp-1") == [run]
        assert db.queries[0][4] == ("run_id", False)
