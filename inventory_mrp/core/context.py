"""
Request context passed explicitly into every core operation
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class OrgContext:
    """Organization scope and acting operator for one call"""
    organization_id: str
    operator_id: Optional[str] = None

    @property
    def actor(self) -> str:
        return self.operator_id or "SYSTEM"
