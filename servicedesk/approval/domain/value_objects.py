"""
Approval Value Objects
======================

Approval stages as authored on intake forms.
"""

from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from servicedesk.config import ApproverType


class ApprovalStage(BaseModel):
    """
    One step of a form's sequential approval gate.

    Exactly one of ``user_id`` / ``role`` / ``team_id`` is used, chosen by
    ``approver_type``.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    order: int = Field(..., ge=0, description="Ascending order = sequence")
    approver_type: ApproverType
    user_id: Optional[str] = None
    role: Optional[str] = None
    team_id: Optional[str] = None
    is_required: bool = True

    @model_validator(mode="after")
    def validate_target(self) -> "ApprovalStage":
        required = {
            ApproverType.USER: ("user_id", self.user_id),
            ApproverType.ROLE: ("role", self.role),
            ApproverType.TEAM: ("team_id", self.team_id),
        }[self.approver_type]
        if not required[1]:
            raise ValueError(f"approver_type '{self.approver_type.value}' requires '{required[0]}'")
        return self

    @property
    def approver_ref(self) -> str:
        """The user id, role name or team id this stage points at."""
        if self.approver_type == ApproverType.USER:
            return self.user_id
        if self.approver_type == ApproverType.ROLE:
            return self.role
        return self.team_id


def ordered_stages(stages: Iterable[ApprovalStage]) -> List[ApprovalStage]:
    """Stages by ascending order; ties keep authored order."""
    return sorted(stages, key=lambda s: s.order)
