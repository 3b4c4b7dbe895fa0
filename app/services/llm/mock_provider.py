"""
Mock LLM Provider - Para testes e desenvolvimento local sem chamadas reais.
"""
from typing import List, Optional, Callable
from dataclasses import dataclass, field

from .protocol import LLMError
from .models import (
    LLMRequest,
    LLMResponse,
    StopReason,
)


@dataclass
class MockLLMProvider:
    """
    Provider mockado.

    Exemplo de uso básico:
        mock = MockLLMProvider(default_response="1. Volte!\\n2. Sentimos sua falta")
        response = await mock.generate(request)

    Exemplo com callback:
        def custom_response(request):
            return LLMResponse(content=f"Recebi: {request.messages[-1].content}")

        mock = MockLLMProvider(response_callback=custom_response)
    """

    default_response: str = "Mock response"
    stop_reason: StopReason = StopReason.END_TURN
    model_id: str = "mock-model"

    # Callback opcional para respostas dinâmicas
    response_callback: Optional[Callable[[LLMRequest], LLMResponse]] = None

    # Tracking de chamadas (para assertions em testes)
    calls: List[LLMRequest] = field(default_factory=list)

    # Simular erros
    should_fail: bool = False
    fail_message: str = "Mock error"

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Registra a chamada e devolve a resposta configurada."""
        self.calls.append(request)

        if self.should_fail:
            raise LLMError(
                self.fail_message,
                provider="mock",
                retryable=False,
            )

        if self.response_callback:
            return self.response_callback(request)

        return LLMResponse(
            content=self.default_response,
            stop_reason=self.stop_reason,
            usage={"input_tokens": 10, "output_tokens": 20},
            model_id=self.model_id,
        )

    def reset(self):
        """Limpa histórico de chamadas."""
        self.calls.clear()

    @property
    def call_count(self) -> int:
        """Número de chamadas a generate()."""
        return len(self.calls)

    @property
    def last_call(self) -> Optional[LLMRequest]:
        """Última chamada feita."""
        return self.calls[-1] if self.calls else None


def create_mock_that_returns(content: str) -> MockLLMProvider:
    """Cria mock que sempre retorna o conteúdo especificado."""
    return MockLLMProvider(default_response=content)


def create_mock_that_fails(message: str = "Mock error") -> MockLLMProvider:
    """Cria mock que sempre falha."""
    return MockLLMProvider(should_fail=True, fail_message=message)
