"""
Politicas de resultado da simulacao de entrega.

A politica decide, para cada destinatario, se a entrega simulada termina
em SENT ou FAILED. O padrao (AlwaysSentPolicy) reproduz o comportamento
original de marcar todo envio como SENT; testes e simulacoes injetam
taxas de falha deterministicas.
"""
import random
from typing import Callable, Optional, Protocol, runtime_checkable
from uuid import uuid4

from app.repositories.entities import Customer
from app.services.delivery.types import DeliveryStatus


@runtime_checkable
class OutcomePolicy(Protocol):
    """Interface para politicas de resultado."""

    def decide(self, customer: Customer) -> DeliveryStatus:
        """Retorna status terminal (SENT ou FAILED) do destinatario."""
        ...


class AlwaysSentPolicy:
    """Todo destinatario recebe SENT."""

    def decide(self, customer: Customer) -> DeliveryStatus:
        return DeliveryStatus.SENT


class FailureRatePolicy:
    """
    Falha uma fracao dos destinatarios, de forma reprodutivel.

    O resultado depende so de (seed, customer.id): nao ha estado mutavel,
    entao execucoes anteriores ou concorrentes nao alteram o sorteio.
    Sem seed, um sal aleatorio e fixado na criacao da politica.

    Exemplo:
        policy = FailureRatePolicy(rate=0.1, seed=42)
    """

    def __init__(self, rate: float, seed: Optional[int] = None):
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"rate deve estar entre 0 e 1, recebido {rate}")
        self.rate = rate
        self.seed = seed if seed is not None else uuid4().hex

    def decide(self, customer: Customer) -> DeliveryStatus:
        if random.Random(f"{self.seed}:{customer.id}").random() < self.rate:
            return DeliveryStatus.FAILED
        return DeliveryStatus.SENT


class CallablePolicy:
    """Adapta uma funcao simples (cliente -> status) para OutcomePolicy."""

    def __init__(self, func: Callable[[Customer], DeliveryStatus]):
        self._func = func

    def decide(self, customer: Customer) -> DeliveryStatus:
        status = DeliveryStatus(self._func(customer))
        if not status.is_terminal:
            raise ValueError("Politica deve retornar SENT ou FAILED")
        return status


def policy_for_failure_rate(rate: float, seed: Optional[int] = None) -> OutcomePolicy:
    """Politica a partir da taxa configurada (0 = sempre SENT)."""
    if rate <= 0:
        return AlwaysSentPolicy()
    return FailureRatePolicy(rate, seed=seed)
