"""Dashboard aggregation.

:func:`summarize` is a pure function of the transaction list and the
current :class:`~statement_ai.view.ViewState`.  The dashboard calls it
after every state change; nothing here mutates its inputs or keeps
state between calls.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from statement_ai.models import (
    SHOW_ALL,
    UNASSIGNED_PROJECT,
    UNKNOWN_SUPPLIER,
    GroupBy,
    Transaction,
)

if TYPE_CHECKING:
    from statement_ai.view import ViewState


@dataclass
class DashboardSummary:
    """Everything the dashboard renders for one view state.

    Attributes:
        total: Sum of all amounts.
        by_supplier: Supplier name -> summed amount.
        by_project: Project name -> summed amount.
        filter_options: ``(group, amount)`` pairs for the active
            dimension, largest amount first.
        filtered: Transactions visible under the current filter.
        visible_total: Sum of the visible amounts.
        selected_total: Sum of the selected amounts, regardless of filter.
        all_visible_selected: True when at least one transaction is
            visible and every visible one is selected.
    """

    total: Decimal = Decimal("0")
    by_supplier: dict[str, Decimal] = field(default_factory=dict)
    by_project: dict[str, Decimal] = field(default_factory=dict)
    filter_options: list[tuple[str, Decimal]] = field(default_factory=list)
    filtered: list[Transaction] = field(default_factory=list)
    visible_total: Decimal = Decimal("0")
    selected_total: Decimal = Decimal("0")
    all_visible_selected: bool = False

    @property
    def supplier_count(self) -> int:
        return len(self.by_supplier)

    @property
    def project_count(self) -> int:
        """Number of named projects seen, not counting "Unassigned"."""
        return len([name for name in self.by_project if name != UNASSIGNED_PROJECT])


def group_key(txn: Transaction, group_by: GroupBy) -> str:
    """Group name of *txn* under *group_by*, with defaults for blanks."""
    if group_by is GroupBy.SUPPLIER:
        return txn.supplier or UNKNOWN_SUPPLIER
    return txn.project or UNASSIGNED_PROJECT


def _sum(transactions: Iterable[Transaction]) -> Decimal:
    return sum((txn.amount for txn in transactions), Decimal("0"))


def group_sums(transactions: Iterable[Transaction], group_by: GroupBy) -> dict[str, Decimal]:
    """Sum amounts per group name, in first-seen order."""
    totals: defaultdict[str, Decimal] = defaultdict(Decimal)
    for txn in transactions:
        totals[group_key(txn, group_by)] += txn.amount
    return dict(totals)


def filter_transactions(
    transactions: Sequence[Transaction],
    group_by: GroupBy,
    filter_value: str | None,
) -> list[Transaction]:
    """Transactions in group *filter_value*, or all of them for ``SHOW_ALL``."""
    if filter_value is SHOW_ALL:
        return list(transactions)
    return [txn for txn in transactions if group_key(txn, group_by) == filter_value]


def summarize(transactions: Sequence[Transaction], view: ViewState) -> DashboardSummary:
    """Compute every dashboard figure for *view*.

    Args:
        transactions: Full transaction list of the current run.
        view: Active grouping dimension, filter and selection.

    Returns:
        A fresh :class:`DashboardSummary`.
    """
    by_supplier = group_sums(transactions, GroupBy.SUPPLIER)
    by_project = group_sums(transactions, GroupBy.PROJECT)
    active = by_supplier if view.group_by is GroupBy.SUPPLIER else by_project

    # Ties on amount fall back to the group name so the order is deterministic.
    options = sorted(active.items(), key=lambda pair: (-pair[1], pair[0]))

    filtered = filter_transactions(transactions, view.group_by, view.filter_value)
    selected = [txn for txn in transactions if txn.txn_id in view.selected]

    return DashboardSummary(
        total=_sum(transactions),
        by_supplier=by_supplier,
        by_project=by_project,
        filter_options=options,
        filtered=filtered,
        visible_total=_sum(filtered),
        selected_total=_sum(selected),
        all_visible_selected=bool(filtered)
        and all(txn.txn_id in view.selected for txn in filtered),
    )
