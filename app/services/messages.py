"""
Geração de mensagens de campanha.

- LLMMessageProvider: pede N variações ao LLM e quebra a resposta em candidatas
- MessageProviderAdapter: limita o tempo da chamada e, em qualquer falha,
  devolve o conjunto fixo FALLBACK_MESSAGES
"""
import logging
import re
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from app.core.exceptions import ProviderError
from app.services.circuit_breaker import CircuitBreaker
from app.services.llm import LLMError, LLMProvider, LLMRequest, Message

logger = logging.getLogger(__name__)

FALLBACK_MESSAGES_VERSION = "2024.1"

FALLBACK_MESSAGES = (
    "We noticed you've been shopping with us and we'd love to offer you a "
    "special discount on your next purchase.",
    "As a valued customer, we're excited to share an exclusive offer with you.",
    "Don't miss out on our latest deals, specially curated for customers like you.",
)

SYSTEM_PROMPT = (
    "You are a marketing expert that creates engaging and professional campaign "
    "messages. Generate {count} unique message variations that are concise and "
    "effective. Answer with one message per line, numbered, and nothing else."
)

USER_PROMPT = (
    "Create {count} different marketing messages for the following campaign "
    "intent: {intent}"
)

# "1.", "2)", "-", "*", "•" no início da linha
_LIST_MARKER = re.compile(r"^\s*(?:\d+\s*[.)\-:]|[-*•])\s*")
_QUOTES = "\"'“”‘’"


@runtime_checkable
class MessageProvider(Protocol):
    """Qualquer gerador de textos candidatos para uma campanha."""

    async def generate(self, intent: str, count: int) -> Sequence[str]:
        ...


def parse_candidates(text: str, limit: int) -> List[str]:
    """
    Quebra a resposta do LLM em mensagens candidatas.

    Remove numeração, marcadores e aspas externas; ignora linhas vazias.
    """
    candidates = []
    for line in text.splitlines():
        cleaned = _LIST_MARKER.sub("", line).strip().strip(_QUOTES).strip()
        if cleaned:
            candidates.append(cleaned)
        if len(candidates) >= limit:
            break
    return candidates


class LLMMessageProvider:
    """MessageProvider que usa um LLMProvider."""

    def __init__(self, llm: LLMProvider, max_tokens: int = 500):
        self.llm = llm
        self.max_tokens = max_tokens

    async def generate(self, intent: str, count: int) -> List[str]:
        """
        Gera até `count` mensagens para a intenção informada.

        Raises:
            ProviderError: intenção vazia, erro do LLM ou resposta sem mensagens
        """
        intent = (intent or "").strip()
        if not intent:
            raise ProviderError("Intencao da campanha vazia", provider="llm")

        request = LLMRequest(
            messages=[Message.user(USER_PROMPT.format(count=count, intent=intent))],
            system_prompt=SYSTEM_PROMPT.format(count=count),
            max_tokens=self.max_tokens,
            temperature=0.9,
        )

        try:
            response = await self.llm.generate(request)
        except LLMError as e:
            raise ProviderError(
                "Erro ao gerar mensagens",
                provider=e.provider,
                details={"retryable": e.retryable},
                original_error=e,
            )

        candidates = parse_candidates(response.content or "", count)
        if not candidates:
            raise ProviderError(
                "LLM retornou resposta sem mensagens",
                provider=self.llm.model_id,
            )
        return candidates


class MessageProviderAdapter:
    """
    Ponto único que absorve falhas do gerador de texto.

    generate_messages() nunca levanta exceção (exceto cancelamento da task):
    sem provider, erro, timeout, circuito aberto ou resposta vazia resultam
    em FALLBACK_MESSAGES.
    """

    def __init__(
        self,
        provider: Optional[MessageProvider],
        max_messages: int = 3,
        timeout_seconds: float = 15.0,
        circuit: Optional[CircuitBreaker] = None,
    ):
        if max_messages < 1:
            raise ValueError("max_messages deve ser >= 1")
        self.provider = provider
        self.max_messages = max_messages
        self.circuit = circuit or CircuitBreaker(
            name="message_provider",
            failure_threshold=3,
            timeout_seconds=timeout_seconds,
            reset_seconds=30,
        )

    @staticmethod
    def fallback() -> List[str]:
        return list(FALLBACK_MESSAGES)

    async def generate_messages(self, intent: str) -> List[str]:
        """Retorna 1..max_messages candidatas, ou o fallback fixo."""
        if self.provider is None:
            logger.warning(
                f"Gerador de mensagens nao configurado, usando fallback v{FALLBACK_MESSAGES_VERSION}"
            )
            return self.fallback()

        try:
            result = await self.circuit.call(
                self.provider.generate, intent, self.max_messages
            )
        except Exception as e:
            logger.warning(
                f"Falha ao gerar mensagens ({type(e).__name__}: {e}), "
                f"usando fallback v{FALLBACK_MESSAGES_VERSION}",
                extra={"extra_fields": {"circuit": self.circuit.state.value}},
            )
            return self.fallback()

        if isinstance(result, str) or not isinstance(result, (list, tuple)):
            logger.warning(f"Resposta malformada do gerador: {type(result).__name__}, usando fallback")
            return self.fallback()

        messages = [
            m.strip() for m in result if isinstance(m, str) and m.strip()
        ][: self.max_messages]
        if not messages:
            logger.warning("Gerador retornou lista vazia, usando fallback")
            return self.fallback()

        return messages
