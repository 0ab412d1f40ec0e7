"""
Escalation Schemas — tenant rules and the derived path of a card.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from decisioncore.decisions.schemas import CardPriority, OwnerRole
from decisioncore.exceptions import InvalidConfigurationError


class EscalationRule(BaseModel):
    """
    Administrator-owned, read-only escalation configuration.

    Lower ``priority`` wins when several rules match a card.
    """
    id: str
    tenant_id: str
    priority: int = 100
    warning_threshold_hours: float = Field(ge=0)
    escalation_threshold_hours: float = Field(ge=0)
    final_escalation_hours: float = Field(ge=0)
    initial_owner_role: OwnerRole
    escalate_to_role: OwnerRole
    final_escalate_to_role: OwnerRole
    is_active: bool = True
    card_priority: Optional[CardPriority] = None     # None = applies to all cards

    @model_validator(mode="after")
    def _check_threshold_order(self) -> "EscalationRule":
        if not (
            self.warning_threshold_hours
            <= self.escalation_threshold_hours
            <= self.final_escalation_hours
        ):
            raise InvalidConfigurationError(
                "Escalation thresholds must satisfy warning <= escalation <= final",
                config_key="escalation_rule.thresholds",
            )
        return self

    def threshold_for_level(self, level: int) -> Optional[float]:
        """Elapsed hours at which a card reaches ``level``."""
        return {
            2: self.escalation_threshold_hours,
            3: self.final_escalation_hours,
        }.get(level)

    def role_for_level(self, level: int) -> OwnerRole:
        if level <= 1:
            return self.initial_owner_role
        if level == 2:
            return self.escalate_to_role
        return self.final_escalate_to_role


class EscalationPath(BaseModel):
    """Computed on read. Never stored."""
    current_level: int
    current_owner_role: OwnerRole
    next_escalation_role: Optional[OwnerRole] = None
    time_until_escalation_hours: Optional[float] = None
    is_final: bool = False
    is_warning: bool = False
    is_overridden: bool = False
    elapsed_hours: float = 0.0
    rule_id: Optional[str] = None


class EscalationRuleCreateRequest(BaseModel):
    id: Optional[str] = None
    priority: int = 100
    warning_threshold_hours: float = Field(ge=0)
    escalation_threshold_hours: float = Field(ge=0)
    final_escalation_hours: float = Field(ge=0)
    initial_owner_role: OwnerRole
    escalate_to_role: OwnerRole
    final_escalate_to_role: OwnerRole
    is_active: bool = True
    card_priority: Optional[CardPriority] = None
