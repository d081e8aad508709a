from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from app.domain.ability import Ability

ALWAYS_VISIBLE_FIELDS = frozenset({"id"})


def permitted_fields(ability: Ability, action: str, subject: Any) -> frozenset[str] | None:
    """Attributes the matching allow rules open up; ``None`` means all of them."""
    restrictions: list[frozenset[str]] = []
    for rule in ability.rules_for(action, subject):
        if rule.inverted:
            continue
        if rule.fields is None:
            return None
        restrictions.append(rule.fields)
    if not restrictions:
        return frozenset()
    return frozenset.intersection(*restrictions)


def narrow(allowed: frozenset[str] | None, limit: Iterable[str] | None) -> frozenset[str] | None:
    if limit is None:
        return allowed
    limit_set = frozenset(limit)
    if allowed is None:
        return limit_set
    return allowed & limit_set


def rejected_fields(allowed: frozenset[str] | None, patch: Mapping[str, Any]) -> list[str]:
    if allowed is None:
        return []
    return sorted(key for key in patch if key not in allowed)


def shape(allowed: frozenset[str] | None, data: Mapping[str, Any]) -> dict[str, Any]:
    if allowed is None:
        return dict(data)
    visible = allowed | ALWAYS_VISIBLE_FIELDS
    return {key: value for key, value in data.items() if key in visible}


def patch_admitted(allowed: frozenset[str] | None, patch: Mapping[str, Any]) -> bool:
    return not rejected_fields(allowed, patch)
