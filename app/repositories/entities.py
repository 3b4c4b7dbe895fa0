"""
Entidades lidas do banco: Cliente e Campanha.

O motor de segmentação trata clientes como somente leitura; campanhas só
mudam de status durante a simulação de entrega.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.core.timezone import parse_datetime
from app.services.segmentation.rules import DEFAULT_MAX_DEPTH, RuleGroup, parse_rule_group

logger = logging.getLogger(__name__)


class CampaignStatus(str, Enum):
    """Status possiveis de uma campanha."""

    DRAFT = "draft"
    SENDING = "sending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Customer:
    """
    Entidade Cliente.

    Attributes:
        id: UUID do cliente
        name: Nome de exibição
        email: Email principal
        total_spend: Gasto acumulado (>= 0)
        visits: Número de visitas (>= 0)
        last_active_at: Última atividade (UTC)
    """

    id: str
    name: str = ""
    email: str = ""
    total_spend: float = 0.0
    visits: int = 0
    last_active_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Customer":
        """
        Cria Customer a partir de dict do banco.

        Raises:
            KeyError/ValueError/TypeError: Se a linha estiver malformada
        """
        total_spend = float(data.get("total_spend") or 0)
        visits = int(data.get("visits") or 0)
        if total_spend < 0 or visits < 0:
            raise ValueError(f"Cliente {data.get('id')} com valores negativos")

        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            email=data.get("email") or "",
            total_spend=total_spend,
            visits=visits,
            last_active_at=parse_datetime(data.get("last_active_at")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "total_spend": self.total_spend,
            "visits": self.visits,
            "last_active_at": self.last_active_at.isoformat() if self.last_active_at else None,
        }


@dataclass
class Campaign:
    """Dados de uma campanha."""

    id: str
    name: str
    message: str
    created_at: datetime
    status: CampaignStatus = CampaignStatus.DRAFT
    rules: Optional[dict] = None  # RuleGroup em JSON; None = todos os clientes

    @classmethod
    def from_db_row(cls, row: dict) -> "Campaign":
        """Cria a partir de linha do banco."""
        status_raw = row.get("status") or CampaignStatus.DRAFT.value
        try:
            status = CampaignStatus(status_raw)
        except ValueError:
            logger.warning(f"Campanha {row.get('id')} com status desconhecido: {status_raw}")
            status = CampaignStatus.DRAFT

        created_at = parse_datetime(row.get("created_at"))
        if created_at is None:
            raise ValueError(f"Campanha {row.get('id')} sem created_at")

        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            message=row.get("message") or "",
            created_at=created_at,
            status=status,
            rules=row.get("rules") or None,
        )

    def rule_group(self, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[RuleGroup]:
        """
        Segmento da campanha.

        Raises:
            ValidationError: Se as regras salvas estiverem malformadas
        """
        if self.rules is None:
            return None
        return parse_rule_group(self.rules, max_depth=max_depth)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "rules": self.rules,
        }
