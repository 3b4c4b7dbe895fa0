"""
Compilador de regras de segmentação.

Transforma um RuleGroup em um CompiledFilter: árvore de predicados cujas
folhas apontam para posições de parâmetro, mais a lista de valores
vinculados. Valores do usuário nunca são concatenados em SQL; o texto SQL
só contém nomes de coluna do catálogo fixo e referências de parâmetro.

O mesmo filtro é avaliado:
- no banco, via RPC `count_customers_matching(p_where, p_params)`, que
  executa o WHERE com `USING p_params`;
- em memória, via `CompiledFilter.matches(cliente)`.

Semântica de comparação (idêntica nos dois lados):
- `=`/`!=`: igualdade exata no tipo nativo do campo; campos `number`
  comparam como decimal (mesmo resultado de `numeric` no banco)
- `>`, `<`, `>=`, `<=`: apenas campos numéricos e de data
- `contains`: substring case-sensitive, apenas campos texto
- valor nulo no cliente nunca satisfaz a regra
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from app.core.exceptions import ValidationError
from app.core.timezone import para_utc, parse_datetime
from app.services.segmentation.rules import (
    CUSTOMER_FIELDS,
    DEFAULT_MAX_DEPTH,
    BoolOperator,
    FieldSpec,
    FieldType,
    Operator,
    Rule,
    RuleGroup,
)

_SQL_OPERATORS = {
    Operator.EQ: "=",
    Operator.NEQ: "<>",
    Operator.GT: ">",
    Operator.LT: "<",
    Operator.GTE: ">=",
    Operator.LTE: "<=",
}

_SQL_CASTS = {
    FieldType.STRING: "",
    FieldType.NUMBER: "::numeric",
    FieldType.INTEGER: "::bigint",
    FieldType.TIMESTAMP: "::timestamptz",
}


@dataclass(frozen=True)
class Predicate:
    """Folha compilada: campo, operador e posição do valor em `params`."""

    field: FieldSpec
    operator: Operator
    slot: int


@dataclass(frozen=True)
class Conjunction:
    """Nó compilado que combina filhos com AND/OR, na ordem original."""

    operator: BoolOperator
    children: Tuple[Union[Predicate, "Conjunction"], ...]


FilterNode = Union[Predicate, Conjunction]


@dataclass(frozen=True)
class CompiledFilter:
    """
    Filtro seguro e avaliável derivado 1:1 de um RuleGroup.

    Attributes:
        root: Árvore compilada
        params: Valores vinculados, na ordem dos slots
    """

    root: FilterNode
    params: Tuple[Any, ...]

    # Renderizações SQL

    @property
    def sql(self) -> str:
        """Representação de debug com placeholders posicionais ($1, $2, ...)."""
        return self._render(self.root, lambda p: f"${p.slot + 1}")

    def where_clause(self) -> str:
        """
        WHERE para PostgreSQL lendo os parâmetros de um array jsonb ($1).

        Ex: "(total_spend > ($1->>0)::numeric AND visits >= ($1->>1)::bigint)"
        """
        return self._render(
            self.root,
            lambda p: f"($1->>{p.slot}){_SQL_CASTS[p.field.type]}",
        )

    def params_json(self) -> List[Any]:
        """Parâmetros serializáveis em JSON (datas em ISO-8601)."""
        result = []
        for value in self.params:
            if isinstance(value, datetime):
                result.append(value.isoformat())
            elif isinstance(value, Decimal):
                result.append(str(value))
            else:
                result.append(value)
        return result

    def rpc_payload(self) -> Dict[str, Any]:
        """Argumentos da RPC count_customers_matching."""
        return {"p_where": self.where_clause(), "p_params": self.params_json()}

    def _render(self, node: FilterNode, placeholder) -> str:
        if isinstance(node, Predicate):
            column = node.field.name
            if node.operator is Operator.CONTAINS:
                return f"strpos({column}, {placeholder(node)}) > 0"
            return f"{column} {_SQL_OPERATORS[node.operator]} {placeholder(node)}"

        joiner = f" {node.operator.value} "
        return "(" + joiner.join(self._render(child, placeholder) for child in node.children) + ")"

    def __str__(self) -> str:
        return self.sql

    # Avaliação em memória

    def matches(self, record: Any) -> bool:
        """
        Avalia o filtro contra um cliente (dataclass ou dict).

        Raises:
            TypeError: Se o registro tiver valor de tipo incompatível com o campo
        """
        return self._evaluate(self.root, record)

    def _evaluate(self, node: FilterNode, record: Any) -> bool:
        if isinstance(node, Conjunction):
            results = (self._evaluate(child, record) for child in node.children)
            if node.operator is BoolOperator.AND:
                return all(results)
            return any(results)

        actual = _read_field(record, node.field)
        if actual is None:
            return False

        expected = self.params[node.slot]
        if node.field.type is FieldType.NUMBER:
            actual = _as_decimal(actual, node.field)
            expected = _as_decimal(expected, node.field)

        op = node.operator
        if op is Operator.EQ:
            return actual == expected
        if op is Operator.NEQ:
            return actual != expected
        if op is Operator.CONTAINS:
            if not isinstance(actual, str):
                raise TypeError(f"Campo {node.field.name} não é texto: {actual!r}")
            return expected in actual
        if op is Operator.GT:
            return actual > expected
        if op is Operator.LT:
            return actual < expected
        if op is Operator.GTE:
            return actual >= expected
        return actual <= expected


def _read_field(record: Any, field: FieldSpec) -> Any:
    if isinstance(record, Mapping):
        value = record.get(field.name)
    else:
        value = getattr(record, field.name, None)

    if field.type is FieldType.TIMESTAMP and value is not None:
        try:
            return parse_datetime(value)
        except ValueError:
            raise TypeError(f"Campo {field.name} não é data: {value!r}")
    return value


class PredicateCompiler:
    """
    Compila RuleGroup em CompiledFilter.

    Falha com ValidationError (sem saída parcial) quando:
    - campo desconhecido
    - operador incompatível com o tipo do campo
    - valor de tipo incompatível com o campo
    - grupo sem filhos
    - profundidade acima de max_depth (grupo raiz = nível 1)
    """

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        fields: Optional[Dict[str, FieldSpec]] = None,
    ):
        if max_depth < 1:
            raise ValueError("max_depth deve ser >= 1")
        self.max_depth = max_depth
        self.fields = fields if fields is not None else CUSTOMER_FIELDS

    def compile(self, group: RuleGroup) -> CompiledFilter:
        if not isinstance(group, RuleGroup):
            raise ValidationError(
                "Filtro deve ser um grupo de regras",
                details={"received": type(group).__name__},
            )
        params: List[Any] = []
        root = self._compile_group(group, params, depth=1, path="root")
        return CompiledFilter(root=root, params=tuple(params))

    def _compile_group(
        self,
        group: RuleGroup,
        params: List[Any],
        depth: int,
        path: str,
    ) -> Conjunction:
        if depth > self.max_depth:
            raise ValidationError(
                f"Profundidade máxima de {self.max_depth} níveis excedida",
                details={"path": path, "max_depth": self.max_depth},
            )
        if not group.children:
            raise ValidationError("Grupo de regras vazio", details={"path": path})

        children = []
        for index, child in enumerate(group.children):
            child_path = f"{path}.rules[{index}]"
            if isinstance(child, RuleGroup):
                children.append(self._compile_group(child, params, depth + 1, child_path))
            elif isinstance(child, Rule):
                children.append(self._compile_rule(child, params, child_path))
            else:
                raise ValidationError(
                    "Filho de grupo deve ser Rule ou RuleGroup",
                    details={"path": child_path, "received": type(child).__name__},
                )
        return Conjunction(operator=group.operator, children=tuple(children))

    def _compile_rule(self, rule: Rule, params: List[Any], path: str) -> Predicate:
        spec = self.fields.get(rule.field)
        if spec is None:
            raise ValidationError(
                f"Campo desconhecido: {rule.field!r}",
                details={"path": path, "field": rule.field},
            )
        if not spec.allows(rule.operator):
            raise ValidationError(
                f"Operador '{rule.operator.value}' não suportado para campo {spec.type.value}",
                details={"path": path, "field": rule.field, "operator": rule.operator.value},
            )

        value = _coerce_value(spec, rule.value, path)
        params.append(value)
        return Predicate(field=spec, operator=rule.operator, slot=len(params) - 1)


def _as_decimal(value: Any, spec: FieldSpec) -> Decimal:
    # float -> Decimal via str: 1000.1 vira Decimal("1000.1"), como o cast ::numeric
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TypeError(f"Campo {spec.name} não é numérico: {value!r}")
    result = Decimal(str(value))
    if not result.is_finite():
        raise TypeError(f"Campo {spec.name} não é finito: {value!r}")
    return result


def _coerce_value(spec: FieldSpec, value: Any, path: str) -> Any:
    """Valida (e normaliza datas) o valor de uma regra para o tipo do campo."""

    def _mismatch() -> ValidationError:
        return ValidationError(
            f"Valor {value!r} incompatível com campo {spec.name} ({spec.type.value})",
            details={"path": path, "field": spec.name, "expected": spec.type.value},
        )

    if isinstance(value, bool) or value is None:
        raise _mismatch()

    if spec.type is FieldType.STRING:
        if not isinstance(value, str):
            raise _mismatch()
        return value

    if spec.type is FieldType.INTEGER:
        if not isinstance(value, int):
            raise _mismatch()
        return value

    if spec.type is FieldType.NUMBER:
        if not isinstance(value, (int, float, Decimal)):
            raise _mismatch()
        if isinstance(value, float) and not math.isfinite(value):
            raise _mismatch()
        if isinstance(value, Decimal) and not value.is_finite():
            raise _mismatch()
        return value

    # TIMESTAMP
    if isinstance(value, datetime):
        return para_utc(value)
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
        except ValueError:
            raise _mismatch()
        if parsed is None:
            raise _mismatch()
        return parsed
    raise _mismatch()


def compile_rule_group(group: RuleGroup, max_depth: int = DEFAULT_MAX_DEPTH) -> CompiledFilter:
    """Atalho para PredicateCompiler(max_depth).compile(group)."""
    return PredicateCompiler(max_depth=max_depth).compile(group)
