"""
Base Repository - Contrato do armazenamento de clientes e entregas.

Este modulo define a interface que todo backend de dados deve implementar,
garantindo consistencia e facilitando testes.

Modos de falha:
- leituras levantam QueryError (banco inacessivel ou resposta malformada)
- escritas levantam PersistenceError
"""
from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional, List
from dataclasses import dataclass

from app.repositories.entities import Campaign, CampaignStatus, Customer
from app.services.delivery.types import DeliveryLog, DeliveryRun
from app.services.segmentation.compiler import CompiledFilter

# Type variable para entidades
T = TypeVar('T')


@dataclass
class QueryResult(Generic[T]):
    """Resultado padronizado de query (valor padrao + erro observavel)."""
    data: Optional[T] = None
    success: bool = True
    error: Optional[str] = None
    count: Optional[int] = None


class CustomerStore(ABC):
    """
    Interface do armazenamento usado pelo motor de segmentacao.

    Example:
        class MeuStore(CustomerStore):
            async def list_customers(self) -> List[Customer]:
                ...
    """

    # Clientes

    @abstractmethod
    async def list_customers(self) -> List[Customer]:
        """Lista todos os clientes."""
        pass

    @abstractmethod
    async def count_matching(self, compiled: CompiledFilter) -> int:
        """
        Conta clientes que satisfazem o filtro compilado.

        Args:
            compiled: Filtro com parametros vinculados

        Returns:
            Quantidade (>= 0)
        """
        pass

    # Logs de entrega (append-only)

    @abstractmethod
    async def append_delivery_log(self, log: DeliveryLog) -> DeliveryLog:
        """
        Persiste um registro de entrega.

        Returns:
            Registro como gravado (com id, se o backend gerar)
        """
        pass

    @abstractmethod
    async def list_delivery_logs(self, campaign_id: str) -> List[DeliveryLog]:
        """Lista registros de entrega de uma campanha."""
        pass

    # Campanhas e execucoes

    @abstractmethod
    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Busca campanha por ID (None se nao encontrada)."""
        pass

    @abstractmethod
    async def update_campaign_status(self, campaign_id: str, status: CampaignStatus) -> None:
        """Atualiza status da campanha."""
        pass

    @abstractmethod
    async def save_delivery_run(self, run: DeliveryRun) -> DeliveryRun:
        """Cria ou atualiza (por run_id) o estado de uma execucao."""
        pass

    @abstractmethod
    async def list_delivery_runs(self, campaign_id: str) -> List[DeliveryRun]:
        """Lista execucoes de uma campanha."""
        pass
