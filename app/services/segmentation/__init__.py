"""
Modulo de segmentacao de clientes.

Estrutura:
- rules: Rule, RuleGroup e catalogo de campos
- compiler: RuleGroup -> CompiledFilter (parametros vinculados)
- estimator: contagem de audiencia via CustomerStore

Uso:
    from app.services.segmentation import Rule, RuleGroup, compile_rule_group

    grupo = RuleGroup.all_of(
        Rule("total_spend", ">", 1000),
        Rule("visits", ">=", 5),
    )
    compiled = compile_rule_group(grupo)
    compiled.sql  # "(total_spend > $1 AND visits >= $2)"
"""
from app.services.segmentation.rules import (
    CUSTOMER_FIELDS,
    DEFAULT_MAX_DEPTH,
    BoolOperator,
    FieldSpec,
    FieldType,
    Operator,
    Rule,
    RuleGroup,
    parse_rule_group,
)
from app.services.segmentation.compiler import (
    CompiledFilter,
    PredicateCompiler,
    compile_rule_group,
)

__all__ = [
    "CUSTOMER_FIELDS",
    "DEFAULT_MAX_DEPTH",
    "BoolOperator",
    "FieldSpec",
    "FieldType",
    "Operator",
    "Rule",
    "RuleGroup",
    "parse_rule_group",
    "CompiledFilter",
    "PredicateCompiler",
    "compile_rule_group",
]
