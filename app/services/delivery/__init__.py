"""
Modulo de simulacao de entrega.

Estrutura:
- types: DeliveryLog, DeliveryStats, DeliveryRun e enums
- policies: politicas de resultado (SENT/FAILED) por destinatario
- simulator: DeliverySimulator (importar direto de app.services.delivery.simulator)
"""
from app.services.delivery.types import (
    DeliveryLog,
    DeliveryRun,
    DeliveryStats,
    DeliveryStatus,
    RunStatus,
)

__all__ = [
    "DeliveryLog",
    "DeliveryRun",
    "DeliveryStats",
    "DeliveryStatus",
    "RunStatus",
]
