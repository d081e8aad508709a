from __future__ import annotations

from typing import Any

from app.domain.models import RoleScope, RuleAction, SubjectType

ROLE_ADMIN = "Amministratore di Sistema"
ROLE_TECHNICAL_OFFICE = "Ufficio Tecnico"
ROLE_AFTER_SALES = "Ufficio Post Vendita"
ROLE_AREA_MANAGER = "Area Manager"
ROLE_BRANCH_MANAGER = "Responsabile Filiale"
ROLE_WORKSHOP_MANAGER = "Responsabile Officina e Service"
ROLE_WAREHOUSE = "Magazzino"

# Highest first; an actor's primary role is the first one it holds.
SYSTEM_ROLE_PRECEDENCE: tuple[str, ...] = (
    ROLE_ADMIN,
    ROLE_TECHNICAL_OFFICE,
    ROLE_AFTER_SALES,
    ROLE_AREA_MANAGER,
    ROLE_BRANCH_MANAGER,
    ROLE_WORKSHOP_MANAGER,
    ROLE_WAREHOUSE,
)
SYSTEM_ROLE_NAMES = frozenset(SYSTEM_ROLE_PRECEDENCE)

GUEST_RULES: tuple[dict[str, Any], ...] = (
    {"action": RuleAction.READ, "subject": SubjectType.PUBLIC_CONTENT},
)

LOCATION_SUBJECTS = (
    SubjectType.FILIALE,
    SubjectType.EDIFICIO,
    SubjectType.PIANO,
    SubjectType.LOCALE,
)


def _rules(action: RuleAction, *subjects: SubjectType, **extra: Any) -> list[dict[str, Any]]:
    return [{"action": action, "subject": subject, **extra} for subject in subjects]


ROLE_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "name": ROLE_ADMIN,
        "description": "full control of the tenant",
        "scope": RoleScope.TENANT,
        "rules": _rules(RuleAction.MANAGE, SubjectType.ALL),
    },
    {
        "name": ROLE_TECHNICAL_OFFICE,
        "description": "technical office, manages locations and assets in every branch",
        "scope": RoleScope.TENANT,
        "rules": [
            *_rules(RuleAction.MANAGE, *LOCATION_SUBJECTS, SubjectType.ASSET),
            *_rules(RuleAction.READ, SubjectType.USER, SubjectType.ROLE),
        ],
    },
    {
        "name": ROLE_AFTER_SALES,
        "description": "after-sales office, reads locations and maintains assets",
        "scope": RoleScope.TENANT,
        "rules": [
            *_rules(RuleAction.READ, *LOCATION_SUBJECTS, SubjectType.ASSET),
            *_rules(RuleAction.UPDATE, SubjectType.ASSET),
        ],
    },
    {
        "name": ROLE_AREA_MANAGER,
        "description": "manages the branches of an area",
        "scope": RoleScope.AREA,
        "rules": [
            *_rules(RuleAction.READ, *LOCATION_SUBJECTS, SubjectType.ASSET, SubjectType.USER),
            *_rules(RuleAction.UPDATE, *LOCATION_SUBJECTS, SubjectType.ASSET),
        ],
    },
    {
        "name": ROLE_BRANCH_MANAGER,
        "description": "manages a single branch",
        "scope": RoleScope.BRANCH,
        "rules": [
            *_rules(RuleAction.READ, *LOCATION_SUBJECTS, SubjectType.USER, SubjectType.ROLE),
            *_rules(RuleAction.UPDATE, *LOCATION_SUBJECTS, SubjectType.USER),
            *_rules(RuleAction.CREATE, SubjectType.PIANO, SubjectType.LOCALE),
            *_rules(RuleAction.MANAGE, SubjectType.ASSET),
        ],
    },
    {
        "name": ROLE_WORKSHOP_MANAGER,
        "description": "workshop and service lead of a branch",
        "scope": RoleScope.BRANCH,
        "rules": [
            *_rules(RuleAction.READ, *LOCATION_SUBJECTS),
            *_rules(RuleAction.CREATE, SubjectType.ASSET),
            *_rules(RuleAction.READ, SubjectType.ASSET),
            *_rules(RuleAction.UPDATE, SubjectType.ASSET),
        ],
    },
    {
        "name": ROLE_WAREHOUSE,
        "description": "warehouse staff, stores assets in boxes and shelves",
        "scope": RoleScope.BRANCH,
        "rules": [
            *_rules(RuleAction.READ, SubjectType.FILIALE, SubjectType.LOCALE, SubjectType.ASSET),
            *_rules(RuleAction.UPDATE, SubjectType.ASSET, fields=["scatola", "scaffale", "notes"]),
        ],
    },
)

# Business allow-lists narrower than anything the rules may grant, keyed by
# subject and the actor's primary role.
POLICY_FIELD_LIMITS: dict[tuple[SubjectType, str], frozenset[str]] = {
    (SubjectType.ASSET, ROLE_WAREHOUSE): frozenset({"scatola", "scaffale", "notes"}),
    (SubjectType.FILIALE, ROLE_BRANCH_MANAGER): frozenset({"telefono", "email", "fax", "notes"}),
    (SubjectType.EDIFICIO, ROLE_BRANCH_MANAGER): frozenset({"description", "notes"}),
    (SubjectType.PIANO, ROLE_BRANCH_MANAGER): frozenset({"description", "notes"}),
}


def primary_role_name(role_names: frozenset[str]) -> str | None:
    for name in SYSTEM_ROLE_PRECEDENCE:
        if name in role_names:
            return name
    return None
