"""
Tests for category ownership.
"""

import pytest

from decisioncore.decisions.ownership import OWNER_FOR_CATEGORY, owner_for
from decisioncore.decisions.schemas import OwnerRole
from decisioncore.signals.schemas import SignalCategory


class TestOwnership:

    def test_every_category_has_an_owner(self):
        assert set(OWNER_FOR_CATEGORY) == set(SignalCategory)

    @pytest.mark.parametrize("category,role", [
        (SignalCategory.CASH_LOCK, OwnerRole.CFO),
        (SignalCategory.MARGIN_LEAK, OwnerRole.CFO),
        (SignalCategory.LOST_REVENUE, OwnerRole.COO),
        (SignalCategory.MARKDOWN_RISK, OwnerRole.COO),
        (SignalCategory.SIZE_BREAK, OwnerRole.CEO),
    ])
    def test_owner_for(self, category, role):
        assert owner_for(category) == role
