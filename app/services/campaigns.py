"""
Servico de campanhas - API consumida pela camada de apresentacao.

Cada operacao devolve um valor padrao em falha interna e registra o erro:
- estimate_audience: 0 em QueryError (ValidationError sobe)
- simulate_delivery: {0,0,0} em QueryError/PersistenceError
  (ValidationError e NotFoundError sobem)
- generate_ai_messages: fallback fixo (nunca falha)
"""
import logging
from typing import List, Optional

from app.core.config import Settings
from app.core.exceptions import NotFoundError, PersistenceError, QueryError
from app.repositories.base import CustomerStore
from app.repositories.deps import create_store
from app.repositories.entities import Campaign, Customer
from app.services.delivery.policies import policy_for_failure_rate
from app.services.delivery.simulator import DeliverySimulator
from app.services.delivery.types import DeliveryStats
from app.services.llm import create_llm_provider
from app.services.messages import LLMMessageProvider, MessageProviderAdapter
from app.services.segmentation.compiler import PredicateCompiler
from app.services.segmentation.estimator import AudienceEstimator
from app.services.segmentation.rules import RuleGroup

logger = logging.getLogger(__name__)


class CampaignService:
    """Orquestra segmentacao, simulacao de entrega e geracao de mensagens."""

    def __init__(
        self,
        store: CustomerStore,
        messages: MessageProviderAdapter,
        compiler: Optional[PredicateCompiler] = None,
        simulator: Optional[DeliverySimulator] = None,
    ):
        self.store = store
        self.messages = messages
        self.compiler = compiler or PredicateCompiler()
        self.estimator = AudienceEstimator(store)
        self.simulator = simulator or DeliverySimulator(store)

    async def estimate_audience(self, rule_group: RuleGroup) -> int:
        """
        Tamanho do segmento.

        Raises:
            ValidationError: Regra malformada (nunca vira 0 silenciosamente)
        """
        compiled = self.compiler.compile(rule_group)
        result = await self.estimator.estimate(compiled)
        return result.data

    async def resolve_audience(self, campaign: Campaign) -> List[Customer]:
        """
        Clientes que recebem a campanha.

        Sem regras, a campanha vai para todos os clientes.

        Raises:
            ValidationError: Regras salvas malformadas
            QueryError: Falha de leitura ou dados incompativeis com o filtro
        """
        group = campaign.rule_group(max_depth=self.compiler.max_depth)
        customers = await self.store.list_customers()
        if group is None:
            return customers

        compiled = self.compiler.compile(group)
        try:
            return [c for c in customers if compiled.matches(c)]
        except TypeError as e:
            raise QueryError(
                "Dados de cliente incompativeis com o filtro",
                details={"campaign_id": campaign.id, "filter": compiled.sql},
                original_error=e,
            )

    async def simulate_delivery(
        self,
        campaign_id: str,
        message: Optional[str] = None,
    ) -> DeliveryStats:
        """
        Simula o envio da campanha para a audiencia resolvida.

        Args:
            campaign_id: ID da campanha
            message: Template (default: mensagem salva na campanha)

        Returns:
            DeliveryStats da execucao, ou DeliveryStats.empty() em falha de banco

        Raises:
            NotFoundError: Campanha inexistente
            ValidationError: Regras da campanha malformadas
        """
        try:
            campaign = await self.store.get_campaign(campaign_id)
            if campaign is None:
                raise NotFoundError("Campanha", campaign_id)

            recipients = await self.resolve_audience(campaign)
            return await self.simulator.simulate(campaign, recipients, message)

        except (QueryError, PersistenceError) as e:
            logger.error(
                f"Erro ao simular entrega da campanha {campaign_id}: {e}",
                extra={"extra_fields": {"campaign_id": campaign_id, "error_type": type(e).__name__}},
            )
            return DeliveryStats.empty()

    async def campaign_stats(self, campaign_id: str) -> DeliveryStats:
        """Estatisticas acumuladas das execucoes concluidas (vazio em QueryError)."""
        try:
            return await self.simulator.campaign_stats(campaign_id)
        except QueryError as e:
            logger.error(f"Erro ao buscar estatisticas da campanha {campaign_id}: {e}")
            return DeliveryStats.empty()

    async def generate_ai_messages(self, intent: str) -> List[str]:
        """Candidatas de mensagem; nunca falha."""
        return await self.messages.generate_messages(intent)


def build_campaign_service(
    settings: Settings,
    store: Optional[CustomerStore] = None,
) -> CampaignService:
    """
    Monta o servico a partir das configuracoes.

    Raises:
        ConfigurationError: Backend de dados mal configurado
    """
    store = store or create_store(settings)

    llm = create_llm_provider(settings)
    provider = LLMMessageProvider(llm, max_tokens=settings.LLM_MAX_TOKENS) if llm else None
    messages = MessageProviderAdapter(
        provider,
        max_messages=settings.MESSAGE_CANDIDATES,
        timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
    )

    compiler = PredicateCompiler(max_depth=settings.RULE_MAX_DEPTH)
    simulator = DeliverySimulator(
        store,
        policy=policy_for_failure_rate(settings.DELIVERY_FAILURE_RATE),
        concurrency=settings.DELIVERY_CONCURRENCY,
    )

    return CampaignService(store, messages, compiler=compiler, simulator=simulator)
