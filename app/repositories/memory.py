"""
Backend em memoria.

Avalia o filtro compilado no proprio processo. Usado com
STORE_BACKEND=memory (simulacao local) e nos testes.
"""
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from app.core.exceptions import PersistenceError, QueryError
from app.repositories.base import CustomerStore
from app.repositories.entities import Campaign, CampaignStatus, Customer
from app.services.delivery.types import DeliveryLog, DeliveryRun
from app.services.segmentation.compiler import CompiledFilter

logger = logging.getLogger(__name__)


class InMemoryCustomerStore(CustomerStore):
    """
    CustomerStore mantido em listas e dicts.

    Uso:
        store = InMemoryCustomerStore(customers=[...], campaigns=[...])
        total = await store.count_matching(compiled)
    """

    def __init__(
        self,
        customers: Optional[Iterable[Customer]] = None,
        campaigns: Optional[Iterable[Campaign]] = None,
    ):
        self._customers: List[Customer] = list(customers or [])
        self._campaigns: Dict[str, Campaign] = {c.id: c for c in (campaigns or [])}
        self._logs: List[DeliveryLog] = []
        self._runs: Dict[str, DeliveryRun] = {}

    def add_customer(self, customer: Customer) -> None:
        self._customers.append(customer)

    def add_campaign(self, campaign: Campaign) -> None:
        self._campaigns[campaign.id] = campaign

    async def list_customers(self) -> List[Customer]:
        return list(self._customers)

    async def count_matching(self, compiled: CompiledFilter) -> int:
        try:
            return sum(1 for customer in self._customers if compiled.matches(customer))
        except TypeError as e:
            raise QueryError(
                "Dados de cliente incompativeis com o filtro",
                details={"filter": compiled.sql},
                original_error=e,
            )

    async def append_delivery_log(self, log: DeliveryLog) -> DeliveryLog:
        if log.campaign_id not in self._campaigns:
            raise PersistenceError(
                "Campanha inexistente para log de entrega",
                details={"campaign_id": log.campaign_id},
            )
        stored = replace(log, id=log.id or str(uuid4()))
        self._logs.append(stored)
        return stored

    async def list_delivery_logs(self, campaign_id: str) -> List[DeliveryLog]:
        return [log for log in self._logs if log.campaign_id == campaign_id]

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)

    async def update_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            raise PersistenceError(
                "Campanha nao encontrada para atualizar status",
                details={"campaign_id": campaign_id},
            )
        self._campaigns[campaign_id] = replace(campaign, status=status)

    async def save_delivery_run(self, run: DeliveryRun) -> DeliveryRun:
        self._runs[run.run_id] = run
        return run

    async def list_delivery_runs(self, campaign_id: str) -> List[DeliveryRun]:
        return [run for run in self._runs.values() if run.campaign_id == campaign_id]
