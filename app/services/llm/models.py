"""
Modelos de dados para LLM Provider.

Dataclasses para request/response desacoplados de qualquer provider.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class MessageRole(str, Enum):
    """Roles de mensagem suportados."""
    USER = "user"


class StopReason(str, Enum):
    """Motivos de parada da geração."""
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"


@dataclass(frozen=True)
class Message:
    """
    Uma mensagem na conversa.

    Attributes:
        role: Quem enviou (user)
        content: Conteúdo da mensagem
    """
    role: MessageRole
    content: str

    @classmethod
    def user(cls, content: str) -> "Message":
        """Cria mensagem do usuário."""
        return cls(role=MessageRole.USER, content=content)

    def to_dict(self) -> dict:
        """Converte para dict (formato API)."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class LLMRequest:
    """
    Request para o LLM.

    Attributes:
        messages: Lista de mensagens da conversa
        system_prompt: Prompt de sistema (opcional)
        max_tokens: Máximo de tokens na resposta
        temperature: Temperatura (0.0 = determinístico, 1.0 = criativo)
    """
    messages: List[Message]
    system_prompt: Optional[str] = None
    max_tokens: int = 300
    temperature: float = 0.7


@dataclass
class LLMResponse:
    """
    Response do LLM.

    Attributes:
        content: Texto gerado
        stop_reason: Por que a geração parou
        usage: Tokens usados (input, output)
        model_id: Modelo que gerou a resposta
        raw_response: Response original do provider (para debug)
    """
    content: str
    stop_reason: StopReason = StopReason.END_TURN
    usage: Dict[str, int] = field(default_factory=dict)
    model_id: str = ""
    raw_response: Optional[Any] = None

    @property
    def input_tokens(self) -> int:
        """Tokens de input usados."""
        return self.usage.get("input_tokens", 0)

    @property
    def output_tokens(self) -> int:
        """Tokens de output usados."""
        return self.usage.get("output_tokens", 0)
