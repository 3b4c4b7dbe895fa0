"""
Repository Supabase para clientes, campanhas e logs de entrega.

Tabelas (ver migrations/001_audience_schema.sql):
- customers
- campaigns
- communication_logs (append-only, um registro por destinatario/execucao)
- delivery_runs

A contagem de audiencia usa a RPC `count_customers_matching`, que executa
o WHERE compilado com os parametros vinculados via `USING`.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from app.core.exceptions import PersistenceError, QueryError
from app.repositories.base import CustomerStore
from app.repositories.entities import Campaign, CampaignStatus, Customer
from app.services.circuit_breaker import CircuitBreaker, CircuitOpenError
from app.services.delivery.types import DeliveryLog, DeliveryRun
from app.services.segmentation.compiler import CompiledFilter
from app.services.supabase import run_with_circuit

logger = logging.getLogger(__name__)

_MALFORMED_ROW_ERRORS = (KeyError, ValueError, TypeError)


class SupabaseCustomerStore(CustomerStore):
    """
    CustomerStore sobre o client do Supabase.

    Uso:
        client = create_supabase_client(settings)
        store = SupabaseCustomerStore(client, create_supabase_circuit(settings))
    """

    CUSTOMERS_TABLE = "customers"
    CAMPAIGNS_TABLE = "campaigns"
    LOGS_TABLE = "communication_logs"
    RUNS_TABLE = "delivery_runs"
    COUNT_RPC = "count_customers_matching"
    PAGE_SIZE = 1000

    def __init__(self, db_client: Any, circuit: Optional[CircuitBreaker] = None):
        self.db = db_client
        self.circuit = circuit or CircuitBreaker(name="supabase", timeout_seconds=10.0)

    async def _read(self, func: Callable[[], Any], operation: str) -> Any:
        try:
            return await run_with_circuit(self.circuit, func)
        except CircuitOpenError as e:
            raise QueryError(f"Supabase indisponivel ({operation})", original_error=e)
        except asyncio.TimeoutError as e:
            raise QueryError(f"Timeout no Supabase ({operation})", original_error=e)
        except Exception as e:
            logger.error(f"Erro de leitura no Supabase ({operation}): {e}")
            raise QueryError(f"Erro ao consultar {operation}", original_error=e)

    async def _write(self, func: Callable[[], Any], operation: str) -> Any:
        try:
            return await run_with_circuit(self.circuit, func)
        except CircuitOpenError as e:
            raise PersistenceError(f"Supabase indisponivel ({operation})", original_error=e)
        except asyncio.TimeoutError as e:
            raise PersistenceError(f"Timeout no Supabase ({operation})", original_error=e)
        except Exception as e:
            logger.error(f"Erro de escrita no Supabase ({operation}): {e}")
            raise PersistenceError(f"Erro ao gravar {operation}", original_error=e)

    async def _select_all(
        self,
        table: str,
        order_by: str,
        column: Optional[str] = None,
        value: Any = None,
    ) -> List[dict]:
        """
        Le todas as linhas paginando de PAGE_SIZE em PAGE_SIZE.

        order_by deve ser uma coluna unica: sem ordem estavel as paginas
        podem repetir ou pular linhas entre consultas.
        """
        rows: List[dict] = []
        offset = 0
        while True:
            def _select(start=offset):
                query = self.db.table(table).select("*")
                if column is not None:
                    query = query.eq(column, value)
                return (
                    query.order(order_by)
                    .range(start, start + self.PAGE_SIZE - 1)
                    .execute()
                )

            response = await self._read(_select, table)
            page = response.data or []
            rows.extend(page)
            if len(page) < self.PAGE_SIZE:
                return rows
            offset += self.PAGE_SIZE

    # Clientes

    async def list_customers(self) -> List[Customer]:
        rows = await self._select_all(self.CUSTOMERS_TABLE, "id")
        try:
            return [Customer.from_dict(row) for row in rows]
        except _MALFORMED_ROW_ERRORS as e:
            raise QueryError("Linha de cliente malformada", original_error=e)

    async def count_matching(self, compiled: CompiledFilter) -> int:
        payload = compiled.rpc_payload()
        logger.debug(f"Contando audiencia: {compiled.sql}")

        response = await self._read(
            lambda: self.db.rpc(self.COUNT_RPC, payload).execute(),
            self.COUNT_RPC,
        )

        count = response.data
        if isinstance(count, list) and len(count) == 1:
            # Algumas versoes do PostgREST devolvem escalar dentro de lista
            count = count[0]
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise QueryError(
                "Contagem de audiencia malformada",
                details={"received": repr(response.data)},
            )
        return count

    # Logs de entrega

    async def append_delivery_log(self, log: DeliveryLog) -> DeliveryLog:
        response = await self._write(
            lambda: self.db.table(self.LOGS_TABLE).insert(log.to_db_row()).execute(),
            self.LOGS_TABLE,
        )
        if not response.data:
            raise PersistenceError(
                "Insert de log de entrega sem retorno",
                details={"campaign_id": log.campaign_id, "customer_id": log.customer_id},
            )
        try:
            return DeliveryLog.from_db_row(response.data[0])
        except _MALFORMED_ROW_ERRORS as e:
            raise PersistenceError("Log gravado retornou malformado", original_error=e)

    async def list_delivery_logs(self, campaign_id: str) -> List[DeliveryLog]:
        rows = await self._select_all(self.LOGS_TABLE, "id", "campaign_id", campaign_id)
        try:
            return [DeliveryLog.from_db_row(row) for row in rows]
        except _MALFORMED_ROW_ERRORS as e:
            raise QueryError("Log de entrega malformado", original_error=e)

    # Campanhas

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        response = await self._read(
            lambda: (
                self.db.table(self.CAMPAIGNS_TABLE)
                .select("*")
                .eq("id", campaign_id)
                .limit(1)
                .execute()
            ),
            self.CAMPAIGNS_TABLE,
        )
        if not response.data:
            return None
        try:
            return Campaign.from_db_row(response.data[0])
        except _MALFORMED_ROW_ERRORS as e:
            raise QueryError("Campanha malformada", original_error=e)

    async def update_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        await self._write(
            lambda: (
                self.db.table(self.CAMPAIGNS_TABLE)
                .update({"status": status.value})
                .eq("id", campaign_id)
                .execute()
            ),
            self.CAMPAIGNS_TABLE,
        )

    # Execucoes

    async def save_delivery_run(self, run: DeliveryRun) -> DeliveryRun:
        await self._write(
            lambda: (
                self.db.table(self.RUNS_TABLE)
                .upsert(run.to_db_row(), on_conflict="run_id")
                .execute()
            ),
            self.RUNS_TABLE,
        )
        return run

    async def list_delivery_runs(self, campaign_id: str) -> List[DeliveryRun]:
        rows = await self._select_all(self.RUNS_TABLE, "run_id", "campaign_id", campaign_id)
        try:
            return [DeliveryRun.from_db_row(row) for row in rows]
        except _MALFORMED_ROW_ERRORS as e:
            raise QueryError("Execucao malformada", original_error=e)
