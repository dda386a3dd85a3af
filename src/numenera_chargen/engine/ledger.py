"""Budget ledger for the equipment shop.

Tracks spend against a cap (starting shins), partitioned by equipment
category. Purchases form a stack: undo is strictly last-in, first-out.
A rejected purchase leaves every field exactly as it was.
"""

from __future__ import annotations

import logging

from numenera_chargen.models.character import LineItem
from numenera_chargen.models.constants import EquipmentCategory
from numenera_chargen.models.errors import EmptyLedger, OverBudget


logger = logging.getLogger(__name__)


class BudgetLedger:
    """Spend tracker with ``total <= cap`` held at every observable point."""

    __slots__ = ("_cap", "_total", "_subtotals", "_stack")

    def __init__(self, cap: int) -> None:
        if cap < 0:
            raise ValueError(f"Ledger cap must be >= 0, got {cap}")
        self._cap = cap
        self._total = 0
        self._subtotals: dict[EquipmentCategory, int] = {c: 0 for c in EquipmentCategory}
        self._stack: list[LineItem] = []

    # --- Read side ---------------------------------------------------------

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def total(self) -> int:
        return self._total

    def remaining(self) -> int:
        return self._cap - self._total

    def subtotal(self, category: EquipmentCategory) -> int:
        return self._subtotals[category]

    @property
    def subtotals(self) -> dict[EquipmentCategory, int]:
        return dict(self._subtotals)

    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._stack)

    def can_afford(self, cost: int) -> bool:
        return cost <= self.remaining()

    def __len__(self) -> int:
        return len(self._stack)

    # --- Mutations ---------------------------------------------------------

    def add(self, item: LineItem) -> None:
        """Record a purchase, or raise OverBudget without touching state."""
        if item.cost < 0:
            raise ValueError(f"Item {item.item_id!r} has negative cost {item.cost}")
        if self._total + item.cost > self._cap:
            logger.debug(
                "rejected %s (%d shins), %d remaining", item.item_id, item.cost, self.remaining()
            )
            raise OverBudget(item.item_id, item.cost, self.remaining())
        self._stack.append(item)
        self._total += item.cost
        self._subtotals[item.category] += item.cost
        logger.debug("bought %s for %d, %d remaining", item.item_id, item.cost, self.remaining())

    def remove_last(self) -> LineItem:
        """Undo the most recent purchase and return it."""
        if not self._stack:
            raise EmptyLedger()
        item = self._stack.pop()
        self._total -= item.cost
        self._subtotals[item.category] -= item.cost
        logger.debug("refunded %s for %d", item.item_id, item.cost)
        return item

    def copy(self) -> BudgetLedger:
        clone = BudgetLedger(self._cap)
        clone._total = self._total
        clone._subtotals = dict(self._subtotals)
        clone._stack = list(self._stack)
        return clone

    def __deepcopy__(self, memo: dict) -> BudgetLedger:
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BudgetLedger):
            return NotImplemented
        return (
            self._cap == other._cap
            and self._total == other._total
            and self._subtotals == other._subtotals
            and self._stack == other._stack
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"BudgetLedger(cap={self._cap}, total={self._total}, items={len(self._stack)})"
