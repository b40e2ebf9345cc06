"""
Rulebook Value Object
=====================

The administrator-authored configuration the engine reads: SLA policies,
assignment rules, escalation rules, approval forms and notification
settings.

A Rulebook instance is an immutable snapshot. Every operation (ticket
creation, update, approval response, escalation scan) takes one snapshot
at its start and evaluates against it; edits only affect later operations.
"""

from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from servicedesk.approval.domain import ApprovalStage, ordered_stages
from servicedesk.assignment.domain import AssignmentRule, ordered_active
from servicedesk.sla.domain import EscalationRule, SLAPolicy, SLAPolicyTable, ordered_active_escalations
from servicedesk.tickets.domain import NotificationSettings


def _duplicates(values) -> List[str]:
    return sorted(str(v) for v, count in Counter(values).items() if count > 1)


class Rulebook(BaseModel):
    """Snapshot of all administrator-authored rules."""
    model_config = ConfigDict(frozen=True)

    version: Optional[str] = Field(default=None, description="Free-form revision label")
    sla_policies: List[SLAPolicy] = Field(default_factory=list)
    assignment_rules: List[AssignmentRule] = Field(default_factory=list)
    escalation_rules: List[EscalationRule] = Field(default_factory=list)
    approval_forms: Dict[str, List[ApprovalStage]] = Field(
        default_factory=dict,
        description="Approval stages keyed by intake form id"
    )
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)

    @model_validator(mode="after")
    def validate_consistency(self) -> "Rulebook":
        dup = _duplicates(p.priority.value for p in self.sla_policies if p.enabled)
        if dup:
            raise ValueError(f"more than one enabled SLA policy for priority: {', '.join(dup)}")

        dup = _duplicates(r.id for r in self.assignment_rules)
        if dup:
            raise ValueError(f"duplicate assignment rule ids: {', '.join(dup)}")

        dup = _duplicates(r.id for r in self.escalation_rules)
        if dup:
            raise ValueError(f"duplicate escalation rule ids: {', '.join(dup)}")

        for form_id, stages in self.approval_forms.items():
            dup = _duplicates(s.id for s in stages)
            if dup:
                raise ValueError(f"form '{form_id}' has duplicate stage ids: {', '.join(dup)}")
        return self

    def policy_table(self) -> SLAPolicyTable:
        return SLAPolicyTable(self.sla_policies)

    def ordered_assignment_rules(self) -> List[AssignmentRule]:
        return ordered_active(self.assignment_rules)

    def ordered_escalation_rules(self) -> List[EscalationRule]:
        return ordered_active_escalations(self.escalation_rules)

    def stages_for_form(self, form_id: Optional[str]) -> List[ApprovalStage]:
        """Ordered approval stages of a form; empty when the form has none."""
        if not form_id:
            return []
        return ordered_stages(self.approval_forms.get(form_id, []))

    def summary(self) -> Dict[str, int]:
        return {
            "sla_policies": len(self.sla_policies),
            "enabled_sla_policies": len(self.policy_table()),
            "assignment_rules": len(self.assignment_rules),
            "active_assignment_rules": len(self.ordered_assignment_rules()),
            "escalation_rules": len(self.escalation_rules),
            "active_escalation_rules": len(self.ordered_escalation_rules()),
            "approval_forms": len(self.approval_forms),
        }
