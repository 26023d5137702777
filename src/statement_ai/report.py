"""Dashboard rendering and CSV export.

- :func:`print_dashboard` prints the summary cards, the grouped filter
  options and the transaction table for one view state.
- :func:`print_run_summary` prints batch statistics and warnings for a run.
- :func:`export_transactions` writes a transaction list to CSV.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from decimal import Decimal
from pathlib import Path

from statement_ai.aggregation import DashboardSummary
from statement_ai.models import SHOW_ALL, UNASSIGNED_PROJECT, GroupBy, RunResult, Transaction
from statement_ai.view import ViewState

CSV_COLUMNS = [
    "id",
    "date",
    "supplier",
    "project",
    "amount",
    "original_description",
]

_DESCRIPTION_WIDTH = 40


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def print_dashboard(
    transactions: Sequence[Transaction],
    summary: DashboardSummary,
    view: ViewState,
) -> None:
    """Print the dashboard for *view* to stdout.

    Args:
        transactions: Full transaction list (used for the count header).
        summary: Figures computed by :func:`~statement_ai.aggregation.summarize`
            for the same view.
        view: Current grouping, filter and selection.
    """
    dimension = "Supplier" if view.group_by is GroupBy.SUPPLIER else "Project"

    print()
    print("== Statement Summary ==")
    print(f"Total spend:  {format_money(summary.total)} ({len(transactions)} transactions)")
    print(f"Suppliers:    {summary.supplier_count}")
    print(f"Projects:     {summary.project_count}")

    print()
    print(f"Group by {dimension}:")
    all_marker = "*" if view.filter_value is SHOW_ALL else " "
    print(f" {all_marker} {'All ' + dimension + 's':<32} {format_money(summary.total):>14}")
    for name, amount in summary.filter_options:
        marker = "*" if name == view.filter_value else " "
        print(f" {marker} {_truncate(name, 32):<32} {format_money(amount):>14}")

    print()
    label = "Total Amount" if view.filter_value is SHOW_ALL else "Filtered Total"
    print(
        f"{label}: {format_money(summary.visible_total)}    "
        f"Selected: {format_money(summary.selected_total)} "
        f"({len(view.selected)} selected)"
    )

    print()
    if not summary.filtered:
        print("No transactions found matching this filter.")
        print()
        return

    header_check = "[x]" if summary.all_visible_selected else "[ ]"
    print(
        f"{header_check} {'#':>4}  {'Date':<10}  {'Supplier':<24}  {'Project':<16}  "
        f"{'Description':<{_DESCRIPTION_WIDTH}}  {'Amount':>12}"
    )
    for txn in summary.filtered:
        check = "[x]" if txn.txn_id in view.selected else "[ ]"
        project = txn.project or UNASSIGNED_PROJECT
        print(
            f"{check} {txn.txn_id:>4}  {_truncate(txn.date, 10):<10}  "
            f"{_truncate(txn.supplier, 24):<24}  {_truncate(project, 16):<16}  "
            f"{_truncate(txn.original_description, _DESCRIPTION_WIDTH):<{_DESCRIPTION_WIDTH}}  "
            f"{format_money(txn.amount):>12}"
        )
    print()


def print_run_summary(result: RunResult) -> None:
    """Print batch statistics and any warnings from a run."""
    print()
    print("== Processing Summary ==")
    print(f"Extracted: {len(result.transactions)} transactions")
    succeeded = result.batches_total - result.batches_failed
    print(f"Batches:   {succeeded} / {result.batches_total} succeeded")
    if result.batches_failed:
        print(
            f"Dropped:   {result.batches_failed} batch(es), "
            f"{result.rows_dropped} row(s) not extracted"
        )

    if result.warnings:
        print()
        print(f"Warnings: {len(result.warnings)}")
        for w in result.warnings:
            print(f"  - {w}")


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def export_transactions(transactions: Sequence[Transaction], output_path: str | Path) -> Path:
    """Write *transactions* to a CSV file, in list order.

    Overwrites the file if it already exists.  Missing projects are
    written as empty strings.

    Returns:
        The :class:`~pathlib.Path` to the written CSV file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for txn in transactions:
            writer.writerow(
                {
                    "id": txn.txn_id,
                    "date": txn.date,
                    "supplier": txn.supplier,
                    "project": txn.project or "",
                    "amount": str(txn.amount),
                    "original_description": txn.original_description,
                }
            )

    return output_path
