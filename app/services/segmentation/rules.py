"""
Modelo de predicados para segmentação de clientes.

Uma regra (Rule) compara um campo do cliente com um valor; um grupo
(RuleGroup) combina regras e outros grupos com AND/OR. A árvore é imutável:
os filhos são guardados em tupla, então não há como criar ciclos depois da
construção.

Formato JSON aceito (o mesmo do construtor de segmentos da interface):
    {
        "operator": "AND",
        "rules": [
            {"field": "total_spend", "operator": ">", "value": 1000},
            {"operator": "OR", "rules": [...]}
        ]
    }
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple, Union

from app.core.exceptions import ValidationError

DEFAULT_MAX_DEPTH = 10


class FieldType(str, Enum):
    """Tipos de campo do cliente."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    TIMESTAMP = "timestamp"


class Operator(str, Enum):
    """Operadores de comparação suportados."""

    EQ = "="
    NEQ = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    CONTAINS = "contains"

    @classmethod
    def parse(cls, raw: Union["Operator", str]) -> "Operator":
        """Converte string em Operator, aceitando apelidos comuns."""
        if isinstance(raw, cls):
            return raw
        aliases = {"==": "=", "<>": "!="}
        texto = str(raw).strip().lower()
        try:
            return cls(aliases.get(texto, texto))
        except ValueError:
            raise ValidationError(
                f"Operador desconhecido: {raw!r}",
                details={"operator": str(raw)},
            )

    @property
    def is_ordering(self) -> bool:
        return self in ORDERING_OPERATORS


class BoolOperator(str, Enum):
    """Operadores de combinação de um grupo."""

    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, raw: Union["BoolOperator", str]) -> "BoolOperator":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise ValidationError(
                f"Operador de grupo desconhecido: {raw!r}",
                details={"operator": str(raw)},
            )


ORDERING_OPERATORS = frozenset({Operator.GT, Operator.LT, Operator.GTE, Operator.LTE})

OPERATORS_BY_TYPE: Dict[FieldType, frozenset] = {
    FieldType.STRING: frozenset({Operator.EQ, Operator.NEQ, Operator.CONTAINS}),
    FieldType.NUMBER: frozenset({Operator.EQ, Operator.NEQ}) | ORDERING_OPERATORS,
    FieldType.INTEGER: frozenset({Operator.EQ, Operator.NEQ}) | ORDERING_OPERATORS,
    FieldType.TIMESTAMP: frozenset({Operator.EQ, Operator.NEQ}) | ORDERING_OPERATORS,
}


@dataclass(frozen=True)
class FieldSpec:
    """Campo do cliente disponível para segmentação."""

    name: str
    type: FieldType

    def allows(self, operator: Operator) -> bool:
        return operator in OPERATORS_BY_TYPE[self.type]


# Catálogo fechado: só estes nomes chegam ao SQL compilado
CUSTOMER_FIELDS: Dict[str, FieldSpec] = {
    spec.name: spec
    for spec in (
        FieldSpec("name", FieldType.STRING),
        FieldSpec("email", FieldType.STRING),
        FieldSpec("total_spend", FieldType.NUMBER),
        FieldSpec("visits", FieldType.INTEGER),
        FieldSpec("last_active_at", FieldType.TIMESTAMP),
    )
}


@dataclass(frozen=True)
class Rule:
    """
    Comparação simples: campo, operador e valor.

    Attributes:
        field: Nome do campo do cliente (ex: "total_spend")
        operator: Operador de comparação
        value: Valor escalar comparado ao campo
    """

    field: str
    operator: Operator
    value: Any

    def __post_init__(self):
        object.__setattr__(self, "operator", Operator.parse(self.operator))

    def to_dict(self) -> dict:
        value = self.value.isoformat() if hasattr(self.value, "isoformat") else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass(frozen=True)
class RuleGroup:
    """
    Combinação booleana ordenada de regras e subgrupos.

    Um grupo vazio pode ser construído, mas nunca compila: não existe
    atalho "vazio = todos os clientes".
    """

    operator: BoolOperator
    children: Tuple[Union[Rule, "RuleGroup"], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "operator", BoolOperator.parse(self.operator))
        object.__setattr__(self, "children", tuple(self.children))

    @classmethod
    def all_of(cls, *children: Union[Rule, "RuleGroup"]) -> "RuleGroup":
        """Atalho para grupo AND."""
        return cls(BoolOperator.AND, children)

    @classmethod
    def any_of(cls, *children: Union[Rule, "RuleGroup"]) -> "RuleGroup":
        """Atalho para grupo OR."""
        return cls(BoolOperator.OR, children)

    def to_dict(self) -> dict:
        return {
            "operator": self.operator.value,
            "rules": [child.to_dict() for child in self.children],
        }


def _is_group(data: dict) -> bool:
    return "rules" in data or "children" in data


def parse_rule_group(data: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> RuleGroup:
    """
    Constrói RuleGroup a partir de dict (JSON da interface ou do banco).

    Args:
        data: Dict com "operator" e "rules" (ou "children")
        max_depth: Profundidade máxima aceita (grupo raiz = 1)

    Returns:
        RuleGroup equivalente

    Raises:
        ValidationError: Se a estrutura estiver malformada ou profunda demais
    """
    return _parse_group(data, depth=1, max_depth=max_depth, path="root")


def _parse_group(data: Any, depth: int, max_depth: int, path: str) -> RuleGroup:
    if depth > max_depth:
        raise ValidationError(
            f"Profundidade máxima de {max_depth} níveis excedida",
            details={"path": path, "max_depth": max_depth},
        )
    if not isinstance(data, dict) or not _is_group(data):
        raise ValidationError(
            "Grupo de regras deve ser um objeto com 'operator' e 'rules'",
            details={"path": path},
        )

    raw_children = data.get("rules", data.get("children"))
    if not isinstance(raw_children, list):
        raise ValidationError("'rules' deve ser uma lista", details={"path": path})

    children = []
    for index, child in enumerate(raw_children):
        child_path = f"{path}.rules[{index}]"
        if isinstance(child, dict) and _is_group(child):
            children.append(_parse_group(child, depth + 1, max_depth, child_path))
        else:
            children.append(_parse_rule(child, child_path))

    return RuleGroup(BoolOperator.parse(data.get("operator", "AND")), tuple(children))


def _parse_rule(data: Any, path: str) -> Rule:
    if not isinstance(data, dict):
        raise ValidationError("Regra deve ser um objeto", details={"path": path})

    missing = [key for key in ("field", "operator", "value") if key not in data]
    if missing:
        raise ValidationError(
            "Regra incompleta",
            details={"path": path, "missing": missing},
        )

    return Rule(field=data["field"], operator=data["operator"], value=data["value"])
