"""
Ownership — which executive role owns a card of a given category.

Value and cash issues go to the CFO, velocity and operational issues to the
COO, structural assortment issues to the CEO.
"""

from decisioncore.decisions.schemas import OwnerRole
from decisioncore.signals.schemas import SignalCategory

OWNER_FOR_CATEGORY: dict[SignalCategory, OwnerRole] = {
    SignalCategory.CASH_LOCK: OwnerRole.CFO,
    SignalCategory.MARGIN_LEAK: OwnerRole.CFO,
    SignalCategory.LOST_REVENUE: OwnerRole.COO,
    SignalCategory.MARKDOWN_RISK: OwnerRole.COO,
    SignalCategory.SIZE_BREAK: OwnerRole.CEO,
}

_unmapped = set(SignalCategory) - set(OWNER_FOR_CATEGORY)
if _unmapped:
    raise RuntimeError(f"No owner role for categories: {sorted(_unmapped)}")


def owner_for(category: SignalCategory) -> OwnerRole:
    return OWNER_FOR_CATEGORY[category]
