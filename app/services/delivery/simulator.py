"""
Simulador de entrega de campanhas.

Responsavel por:
- Registrar uma execucao (run) com identificador proprio
- Decidir o resultado de cada destinatario (PENDING -> SENT | FAILED)
- Persistir exatamente um log por destinatario
- Agregar estatisticas a partir dos logs gravados pela propria execucao

Execucoes concorrentes da mesma campanha nao se misturam: cada uma tem
run_id distinto e agrega apenas os proprios registros.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from app.core.exceptions import PersistenceError, QueryError, SegmentationServiceError
from app.core.timezone import agora_utc
from app.repositories.base import CustomerStore
from app.repositories.entities import Campaign, CampaignStatus, Customer
from app.services.delivery.policies import AlwaysSentPolicy, OutcomePolicy
from app.services.delivery.types import (
    DeliveryLog,
    DeliveryRun,
    DeliveryStats,
    DeliveryStatus,
    RunStatus,
)

logger = logging.getLogger(__name__)


class _KeepPlaceholders(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def render_message(template: str, customer: Customer) -> str:
    """
    Personaliza a mensagem com {name} e {email} do cliente.

    Placeholders desconhecidos ficam intactos; template malformado
    (chaves desbalanceadas) e usado como esta.
    """
    try:
        return template.format_map(_KeepPlaceholders(name=customer.name, email=customer.email))
    except (ValueError, IndexError, AttributeError):
        return template


class DeliverySimulator:
    """Simulador de entrega por destinatario."""

    def __init__(
        self,
        store: CustomerStore,
        policy: Optional[OutcomePolicy] = None,
        concurrency: int = 10,
        clock: Callable[[], datetime] = agora_utc,
    ):
        if concurrency < 1:
            raise ValueError("concurrency deve ser >= 1")
        self.store = store
        self.policy = policy or AlwaysSentPolicy()
        self.concurrency = concurrency
        self.clock = clock

    async def simulate(
        self,
        campaign: Campaign,
        recipients: Sequence[Customer],
        message: Optional[str] = None,
    ) -> DeliveryStats:
        """
        Executa uma simulacao completa para a campanha.

        Args:
            campaign: Campanha alvo
            recipients: Destinatarios resolvidos (duplicados por id sao ignorados)
            message: Template da mensagem (default: campaign.message)

        Returns:
            DeliveryStats da execucao (total == sent + failed == destinatarios)

        Raises:
            PersistenceError: Se qualquer gravacao falhar ou a politica de
                resultado quebrar; nenhuma estatistica parcial e retornada
            asyncio.CancelledError: Propagado apos registrar a run como FAILED
        """
        template = message if message is not None else campaign.message
        unique = self._dedupe(recipients, campaign.id)

        run = DeliveryRun(
            run_id=str(uuid4()),
            campaign_id=campaign.id,
            status=RunStatus.RUNNING,
            started_at=self.clock(),
            recipients=len(unique),
        )
        logger.info(
            f"Iniciando simulacao da campanha {campaign.id} "
            f"(run={run.run_id}, destinatarios={len(unique)})"
        )

        # 1. Registrar execucao
        await self.store.save_delivery_run(run)
        await self.store.update_campaign_status(campaign.id, CampaignStatus.SENDING)

        # 2 e 3. Gravar logs e agregar; a run nunca fica RUNNING
        try:
            stats = await self._execute(campaign, run, unique, template)
        except asyncio.CancelledError:
            await asyncio.shield(self._mark_failed(campaign, run, "simulacao cancelada"))
            raise
        except SegmentationServiceError as e:
            await self._mark_failed(campaign, run, str(e))
            raise
        except Exception as e:
            # Politica com erro (ou retorno invalido) vira falha de persistencia
            error = PersistenceError(
                "Falha inesperada na simulacao de entrega",
                details={"run_id": run.run_id, "campaign_id": campaign.id},
                original_error=e,
            )
            await self._mark_failed(campaign, run, f"{error}: {e!r}")
            raise error from e

        logger.info(
            f"Campanha {campaign.id}: simulacao concluida "
            f"(run={run.run_id}, sent={stats.sent}, failed={stats.failed})"
        )
        return stats

    async def _execute(
        self,
        campaign: Campaign,
        run: DeliveryRun,
        recipients: List[Customer],
        template: str,
    ) -> DeliveryStats:
        persisted = await self._write_logs(campaign, run, recipients, template)

        # Agregar a partir do que foi gravado
        stats = DeliveryStats.from_logs(persisted, run_id=run.run_id)
        if stats.total != len(recipients):
            raise PersistenceError(
                "Quantidade de logs gravados diverge dos destinatarios",
                details={"run_id": run.run_id, "expected": len(recipients), "persisted": stats.total},
            )

        finished = replace(
            run,
            status=RunStatus.COMPLETED,
            finished_at=self.clock(),
            sent=stats.sent,
            failed=stats.failed,
        )
        await self.store.save_delivery_run(finished)
        await self.store.update_campaign_status(campaign.id, CampaignStatus.COMPLETED)
        return stats

    async def campaign_stats(self, campaign_id: str) -> DeliveryStats:
        """
        Estatisticas acumuladas da campanha.

        Considera apenas logs de execucoes concluidas; execucoes abortadas
        nunca entram na contagem.

        Raises:
            QueryError: Se a leitura falhar
        """
        runs = await self.store.list_delivery_runs(campaign_id)
        completed = {run.run_id for run in runs if run.status is RunStatus.COMPLETED}
        logs = await self.store.list_delivery_logs(campaign_id)
        return DeliveryStats.from_logs(log for log in logs if log.run_id in completed)

    def _dedupe(self, recipients: Sequence[Customer], campaign_id: str) -> List[Customer]:
        seen: Dict[str, Customer] = {}
        for customer in recipients:
            seen.setdefault(customer.id, customer)
        duplicates = len(recipients) - len(seen)
        if duplicates:
            logger.warning(f"Campanha {campaign_id}: {duplicates} destinatarios duplicados ignorados")
        return list(seen.values())

    async def _write_logs(
        self,
        campaign: Campaign,
        run: DeliveryRun,
        recipients: List[Customer],
        template: str,
    ) -> List[DeliveryLog]:
        # PENDING -> SENT | FAILED, decidido antes de qualquer gravacao
        logs = []
        for customer in recipients:
            status = self.policy.decide(customer)
            logs.append(DeliveryLog(
                campaign_id=campaign.id,
                customer_id=customer.id,
                run_id=run.run_id,
                status=status,
                sent_at=max(self.clock(), campaign.created_at),
                message=render_message(template, customer),
                error="simulated delivery failure" if status is DeliveryStatus.FAILED else None,
            ))

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _append(log: DeliveryLog) -> DeliveryLog:
            async with semaphore:
                return await self.store.append_delivery_log(log)

        # Aguarda todas as gravacoes antes de agregar
        results = await asyncio.gather(*(_append(log) for log in logs), return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if not isinstance(error, Exception):
                raise error  # cancelamento e afins
        if errors:
            raise PersistenceError(
                f"Falha ao gravar {len(errors)}/{len(logs)} logs de entrega",
                details={"run_id": run.run_id, "campaign_id": campaign.id},
                original_error=errors[0],
            )
        return list(results)

    async def _mark_failed(self, campaign: Campaign, run: DeliveryRun, reason: str) -> None:
        """Registra execucao como FAILED; erros aqui so sao logados."""
        logger.error(f"Campanha {campaign.id}: simulacao abortada (run={run.run_id}): {reason}")
        failed_run = replace(run, status=RunStatus.FAILED, finished_at=self.clock(), error=reason)
        try:
            await self.store.save_delivery_run(failed_run)
            await self.store.update_campaign_status(campaign.id, CampaignStatus.FAILED)
        except (PersistenceError, QueryError) as e:
            logger.error(f"Nao foi possivel registrar falha da run {run.run_id}: {e}")
