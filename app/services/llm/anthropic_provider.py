"""
Anthropic Provider - Implementação do LLMProvider para Claude.

Este módulo implementa a interface LLMProvider usando a API da Anthropic.
"""

import logging
import asyncio
from typing import List, Optional, Any

import anthropic

from app.services.circuit_breaker import CircuitBreaker, CircuitOpenError
from .protocol import LLMError
from .models import (
    LLMRequest,
    LLMResponse,
    StopReason,
    Message,
)

logger = logging.getLogger(__name__)


class AnthropicProvider:
    """
    Provider de LLM usando Anthropic Claude.

    Implementa a interface LLMProvider.

    Attributes:
        model_id: ID do modelo Claude a usar
        client: Cliente Anthropic

    Exemplo:
        provider = AnthropicProvider(api_key="sk-...", model_id="claude-3-5-haiku-20241022")
        response = await provider.generate(request)
    """

    # Mapeamento de stop_reason da Anthropic para nosso enum
    STOP_REASON_MAP = {
        "end_turn": StopReason.END_TURN,
        "max_tokens": StopReason.MAX_TOKENS,
        "stop_sequence": StopReason.STOP_SEQUENCE,
    }

    def __init__(
        self,
        api_key: str,
        model_id: str,
        circuit: Optional[CircuitBreaker] = None,
        client: Optional[Any] = None,
    ):
        """
        Inicializa o provider.

        Args:
            api_key: API key da Anthropic
            model_id: ID do modelo Claude
            circuit: Circuit breaker opcional (timeout + abertura após falhas)
            client: Cliente já construído (testes)
        """
        self._model_id = model_id
        self._api_key = api_key
        self._circuit = circuit

        if not self._api_key:
            raise LLMError(
                "ANTHROPIC_API_KEY não configurada",
                provider="anthropic",
                retryable=False,
            )

        self._client = client or anthropic.Anthropic(api_key=self._api_key)

    @property
    def model_id(self) -> str:
        """Retorna o ID do modelo."""
        return self._model_id

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Gera resposta do Claude.

        Args:
            request: LLMRequest com mensagens e configurações

        Returns:
            LLMResponse com texto

        Raises:
            LLMError: Se houver erro na API
        """
        try:
            kwargs = {
                "model": self._model_id,
                "messages": self._convert_messages(request.messages),
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            }

            if request.system_prompt:
                kwargs["system"] = request.system_prompt

            logger.debug(
                f"Chamando Anthropic: model={self._model_id}, "
                f"messages={len(kwargs['messages'])}"
            )

            response = await self._call_api(kwargs)

            return self._convert_response(response)

        except CircuitOpenError as e:
            raise LLMError(
                f"Circuit breaker aberto: {e}",
                provider="anthropic",
                retryable=True,
                original_error=e,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(
                "Timeout ao chamar Anthropic",
                provider="anthropic",
                retryable=True,
                original_error=e,
            )
        except anthropic.APIConnectionError as e:
            raise LLMError(
                f"Erro de conexão com Anthropic: {e}",
                provider="anthropic",
                retryable=True,
                original_error=e,
            )
        except anthropic.RateLimitError as e:
            raise LLMError(
                f"Rate limit Anthropic: {e}",
                provider="anthropic",
                retryable=True,
                original_error=e,
            )
        except anthropic.APIStatusError as e:
            raise LLMError(
                f"Erro API Anthropic: {e}",
                provider="anthropic",
                retryable=e.status_code >= 500,
                original_error=e,
            )
        except Exception as e:
            logger.exception("Erro inesperado ao chamar Anthropic")
            raise LLMError(
                f"Erro inesperado: {e}",
                provider="anthropic",
                retryable=False,
                original_error=e,
            )

    async def _call_api(self, kwargs: dict) -> Any:
        """
        Chama a API de forma assíncrona.

        Usa run_in_executor porque o client Anthropic é síncrono.
        Opcionalmente usa circuit breaker para resiliência.
        """

        def _sync_call():
            return self._client.messages.create(**kwargs)

        async def _async_call():
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, _sync_call)

        if self._circuit is not None:
            return await self._circuit.call(_async_call)
        return await _async_call()

    def _convert_messages(self, messages: List[Message]) -> List[dict]:
        """Converte nossas mensagens para formato Anthropic."""
        return [msg.to_dict() for msg in messages]

    def _convert_response(self, response: Any) -> LLMResponse:
        """Converte response da Anthropic para nosso formato."""
        content = "".join(
            block.text for block in response.content if block.type == "text"
        )

        stop_reason = self.STOP_REASON_MAP.get(response.stop_reason, StopReason.END_TURN)

        usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }

        return LLMResponse(
            content=content,
            stop_reason=stop_reason,
            usage=usage,
            model_id=response.model,
            raw_response=response,
        )
