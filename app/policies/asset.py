from __future__ import annotations

from app.domain.models import SubjectType
from app.policies.base import BasePolicy


class AssetPolicy(BasePolicy):
    """Assets follow their branch; warehouse staff only touch storage fields."""

    subject_type = SubjectType.ASSET
