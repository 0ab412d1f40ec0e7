"""
Urgency Policy — one set of thresholds shared by aggregation and card creation.

critical: ETA within 7 days, or damage above 500M
urgent:   ETA within 14 days, or damage above 100M
warning:  everything else
"""

from dataclasses import dataclass
from typing import Optional

from decisioncore.signals.schemas import TimePressure, Urgency

CRITICAL_DAMAGE: float = 500_000_000.0
URGENT_DAMAGE: float = 100_000_000.0
CRITICAL_ETA_DAYS: int = 7
URGENT_ETA_DAYS: int = 14


@dataclass(frozen=True)
class UrgencyPolicy:
    critical_damage: float = CRITICAL_DAMAGE
    urgent_damage: float = URGENT_DAMAGE
    critical_eta_days: int = CRITICAL_ETA_DAYS
    urgent_eta_days: int = URGENT_ETA_DAYS

    @classmethod
    def from_settings(cls, settings) -> "UrgencyPolicy":
        return cls(
            critical_damage=settings.urgency_critical_damage,
            urgent_damage=settings.urgency_urgent_damage,
            critical_eta_days=settings.urgency_critical_eta_days,
            urgent_eta_days=settings.urgency_urgent_eta_days,
        )

    def classify(self, eta_days: Optional[int], damage: float) -> Urgency:
        if eta_days is not None and eta_days <= self.critical_eta_days:
            return Urgency.CRITICAL
        if damage > self.critical_damage:
            return Urgency.CRITICAL
        if eta_days is not None and eta_days <= self.urgent_eta_days:
            return Urgency.URGENT
        if damage > self.urgent_damage:
            return Urgency.URGENT
        return Urgency.WARNING

    def time_pressure(self, eta_days: Optional[int]) -> TimePressure:
        if eta_days is None:
            return TimePressure.NONE
        if eta_days <= 0:
            return TimePressure.OVERDUE
        if eta_days <= self.critical_eta_days:
            return TimePressure.IMMINENT
        if eta_days <= self.urgent_eta_days:
            return TimePressure.SOON
        return TimePressure.SCHEDULED
