"""
Tipos e enums da simulação de entrega.
"""
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from app.core.timezone import parse_datetime


class DeliveryStatus(str, Enum):
    """Estado de um destinatário dentro de uma execução."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not DeliveryStatus.PENDING


class RunStatus(str, Enum):
    """Status de uma execução de simulação."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryLog:
    """
    Registro de entrega de um destinatário em uma execução.

    Imutável e append-only: criado uma única vez por
    (campanha, destinatário, execução).
    """

    campaign_id: str
    customer_id: str
    run_id: str
    status: DeliveryStatus
    sent_at: datetime
    message: str = ""
    error: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        status = DeliveryStatus(self.status)
        if not status.is_terminal:
            raise ValueError("DeliveryLog só aceita status terminal (SENT/FAILED)")
        object.__setattr__(self, "status", status)

    @classmethod
    def from_db_row(cls, row: dict) -> "DeliveryLog":
        """Cria a partir de linha do banco (tabela communication_logs)."""
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            campaign_id=str(row["campaign_id"]),
            customer_id=str(row["customer_id"]),
            run_id=str(row["run_id"]),
            status=DeliveryStatus(row["status"]),
            sent_at=parse_datetime(row["sent_at"]),
            message=row.get("message") or "",
            error=row.get("error"),
        )

    def to_db_row(self) -> dict:
        """Converte para dict de insert."""
        return {
            "campaign_id": self.campaign_id,
            "customer_id": self.customer_id,
            "run_id": self.run_id,
            "status": self.status.value,
            "sent_at": self.sent_at.isoformat(),
            "message": self.message,
            "error": self.error,
        }


@dataclass(frozen=True)
class DeliveryStats:
    """
    Estatísticas agregadas de entrega.

    `total` é sempre derivado (sent + failed), nunca armazenado.
    """

    sent: int = 0
    failed: int = 0
    run_id: Optional[str] = None

    @property
    def total(self) -> int:
        return self.sent + self.failed

    @classmethod
    def empty(cls) -> "DeliveryStats":
        return cls()

    @classmethod
    def from_logs(cls, logs: Iterable[DeliveryLog], run_id: Optional[str] = None) -> "DeliveryStats":
        """Agrupa registros persistidos por status."""
        counts = Counter(log.status for log in logs)
        return cls(
            sent=counts.get(DeliveryStatus.SENT, 0),
            failed=counts.get(DeliveryStatus.FAILED, 0),
            run_id=run_id,
        )

    def to_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed, "total": self.total}


@dataclass(frozen=True)
class DeliveryRun:
    """Uma execução da simulação para uma campanha."""

    run_id: str
    campaign_id: str
    status: RunStatus
    started_at: datetime
    recipients: int = 0
    finished_at: Optional[datetime] = None
    sent: int = 0
    failed: int = 0
    error: Optional[str] = None

    @classmethod
    def from_db_row(cls, row: dict) -> "DeliveryRun":
        return cls(
            run_id=str(row["run_id"]),
            campaign_id=str(row["campaign_id"]),
            status=RunStatus(row["status"]),
            started_at=parse_datetime(row["started_at"]),
            recipients=int(row.get("recipients") or 0),
            finished_at=parse_datetime(row.get("finished_at")),
            sent=int(row.get("sent") or 0),
            failed=int(row.get("failed") or 0),
            error=row.get("error"),
        )

    def to_db_row(self) -> dict:
        return {
            "run_id": self.run_id,
            "campaign_id": self.campaign_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "recipients": self.recipients,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "sent": self.sent,
            "failed": self.failed,
            "error": self.error,
        }
