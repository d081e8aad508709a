from __future__ import annotations

from app.domain.models import SubjectType
from app.policies.base import BasePolicy


class FilialePolicy(BasePolicy):
    subject_type = SubjectType.FILIALE
    branch_attribute = "id"
    # Any actor of the tenant holding a read rule may browse the branch list.
    scope_reads = False


class EdificioPolicy(BasePolicy):
    subject_type = SubjectType.EDIFICIO


class PianoPolicy(BasePolicy):
    subject_type = SubjectType.PIANO


class LocalePolicy(BasePolicy):
    subject_type = SubjectType.LOCALE
