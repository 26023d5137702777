"""Grouping, filter and selection state for the dashboard.

Rules:

- Switching the grouping dimension resets the filter to ``SHOW_ALL`` and
  empties the selection.
- Loading a new transaction list does the same (:meth:`ViewState.reset`).
- Changing the filter leaves the selection alone; selected transactions
  that are no longer visible stay selected and keep counting towards the
  selected total.

Selection is keyed by ``Transaction.txn_id``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from statement_ai.aggregation import filter_transactions
from statement_ai.models import SHOW_ALL, GroupBy, Transaction


@dataclass
class ViewState:
    group_by: GroupBy = GroupBy.SUPPLIER
    filter_value: str | None = SHOW_ALL
    selected: set[int] = field(default_factory=set)

    def reset(self) -> None:
        """Clear the filter and the selection (new transaction list)."""
        self.filter_value = SHOW_ALL
        self.selected = set()

    def set_group_by(self, group_by: GroupBy | str) -> None:
        self.group_by = GroupBy(group_by)
        self.reset()

    def set_filter(self, value: str | None) -> None:
        self.filter_value = value

    def toggle(self, txn_id: int) -> None:
        if txn_id in self.selected:
            self.selected.discard(txn_id)
        else:
            self.selected.add(txn_id)

    def visible(self, transactions: Sequence[Transaction]) -> list[Transaction]:
        return filter_transactions(transactions, self.group_by, self.filter_value)

    def toggle_select_all(self, transactions: Sequence[Transaction]) -> None:
        """Select every visible transaction, or deselect them if all already are.

        Transactions hidden by the current filter are never touched.
        """
        visible_ids = {txn.txn_id for txn in self.visible(transactions)}
        if visible_ids and visible_ids <= self.selected:
            self.selected -= visible_ids
        else:
            self.selected |= visible_ids
