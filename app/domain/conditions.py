"""Closed-operator predicates used to narrow a rule to matching resources.

A condition maps attribute names to either a literal (compared with ``==``)
or an operator expression ``{"op": <operator>, "value": <operand>}``::

    {"filiale_id": "f-1", "priority": {"op": "greaterThan", "value": 3}}

Every key must hold for the resource to match. Evaluation never raises: an
unknown operator, a missing attribute or values that cannot be ordered are
all a non-match.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

OP_EQUALS = "equals"
OP_IN = "in"
OP_GREATER_THAN = "greaterThan"
OP_LESS_THAN = "lessThan"

OPERATORS = (OP_EQUALS, OP_IN, OP_GREATER_THAN, OP_LESS_THAN)

MISSING = object()


def _op_equals(actual: Any, expected: Any) -> bool:
    return bool(actual == expected)


def _op_in(actual: Any, expected: Any) -> bool:
    if isinstance(expected, (str, bytes)) or not isinstance(expected, (list, tuple, set, frozenset)):
        return False
    return actual in expected


def _op_greater_than(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return False
    return bool(actual > expected)


def _op_less_than(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return False
    return bool(actual < expected)


_EVALUATORS: dict[str, Callable[[Any, Any], bool]] = {
    OP_EQUALS: _op_equals,
    OP_IN: _op_in,
    OP_GREATER_THAN: _op_greater_than,
    OP_LESS_THAN: _op_less_than,
}


def _is_operator_expression(value: Any) -> bool:
    return isinstance(value, Mapping) and "op" in value


def resource_attribute(resource: Any, name: str) -> Any:
    if isinstance(resource, Mapping):
        return resource.get(name, MISSING)
    return getattr(resource, name, MISSING)


def _clause_matches(resource: Any, name: str, expected: Any) -> bool:
    actual = resource_attribute(resource, name)
    if actual is MISSING:
        return False
    if not _is_operator_expression(expected):
        return _op_equals(actual, expected)
    evaluator = _EVALUATORS.get(expected.get("op"))
    if evaluator is None or "value" not in expected:
        return False
    try:
        return evaluator(actual, expected["value"])
    except Exception:
        # Incomparable operands (e.g. str > int) count as a non-match.
        return False


def matches(condition: Mapping[str, Any] | None, resource: Any) -> bool:
    if not condition:
        return True
    if not isinstance(condition, Mapping):
        return False
    return all(_clause_matches(resource, name, expected) for name, expected in condition.items())


def validate_condition(condition: Any) -> list[str]:
    if condition is None:
        return []
    if not isinstance(condition, Mapping):
        return ["condition must be an object"]
    errors: list[str] = []
    for name, expected in condition.items():
        if not isinstance(name, str) or not name:
            errors.append("condition keys must be attribute names")
            continue
        if isinstance(expected, Mapping):
            op = expected.get("op")
            if op not in OPERATORS:
                errors.append(f"condition.{name}: unknown operator {op!r}")
                continue
            if "value" not in expected:
                errors.append(f"condition.{name}: missing value")
                continue
            if op == OP_IN and not isinstance(expected["value"], list):
                errors.append(f"condition.{name}: 'in' expects a list")
            extra = set(expected) - {"op", "value"}
            if extra:
                errors.append(f"condition.{name}: unexpected keys {sorted(extra)}")
    return errors
