"""
Módulo centralizado para tratamento de timezone.

O projeto usa UTC para armazenamento e comparação de datas.

Convenções:
- `agora_utc()`: timestamp atual, timezone-aware
- `para_utc(dt)`: normaliza datetime (naive é tratado como UTC)
- `parse_datetime(valor)`: converte string ISO do banco em datetime UTC
"""

from datetime import datetime, timezone
from typing import Optional, Union


TZ_UTC = timezone.utc


def agora_utc() -> datetime:
    """
    Retorna datetime atual em UTC (timezone-aware).

    Use para armazenar no banco, logs e comparações com dados do banco.
    """
    return datetime.now(TZ_UTC)


def para_utc(dt: datetime) -> datetime:
    """Converte datetime para UTC. Datetime naive é assumido como UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=TZ_UTC)
    return dt.astimezone(TZ_UTC)


def parse_datetime(valor: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Converte valor vindo do banco em datetime UTC.

    Aceita datetime, string ISO-8601 (inclusive com sufixo 'Z') ou None.

    Raises:
        ValueError: Se a string não for ISO-8601 válida
    """
    if valor is None or valor == "":
        return None
    if isinstance(valor, datetime):
        return para_utc(valor)
    texto = str(valor).strip()
    if texto.endswith("Z"):
        texto = texto[:-1] + "+00:00"
    return para_utc(datetime.fromisoformat(texto))
