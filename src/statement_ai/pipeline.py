"""Batch orchestration for statement extraction.

Composes the splitter, the batcher and an extraction adapter into one
run: split the statement, send each batch to the adapter in order,
report progress before every call, and concatenate the records of the
batches that succeeded.  A failed batch is logged and dropped; the run
carries on with the next one.

:class:`StatementRun` wraps :func:`run` with the observable
:class:`~statement_ai.models.RunState` the CLI displays.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace

from statement_ai.batching import DEFAULT_BATCH_SIZE, make_batches
from statement_ai.llm import ExtractionAdapter
from statement_ai.models import RunResult, RunState, Transaction
from statement_ai.splitter import split_statement

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class RunFailedError(Exception):
    """A run could not complete and produced no result."""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def run(
    csv_text: str,
    projects: Sequence[str],
    adapter: ExtractionAdapter,
    on_progress: ProgressCallback | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> RunResult:
    """Extract every transaction from one statement.

    Batches are processed strictly one after another.  Before each call
    the progress is reported as ``floor(100 * rows_done / total_rows)``;
    after the last batch it is reported as 100.

    Args:
        csv_text: Full statement text, header line first.
        projects: Known project names passed to every adapter call.
        adapter: Extraction adapter implementing ``ExtractionAdapter``.
        on_progress: Optional callback receiving progress percentages.
        batch_size: Rows per adapter call.

    Returns:
        A :class:`RunResult` whose transactions are numbered 0..n-1 in
        statement order.  Failed batches contribute nothing and are
        counted in ``batches_failed`` and ``rows_dropped``.
    """
    report = on_progress or (lambda _progress: None)

    split = split_statement(csv_text)
    if split is None:
        report(100)
        return RunResult(warnings=["Statement has no data rows"])

    header, rows = split
    batches = make_batches(rows, batch_size)
    result = RunResult(batches_total=len(batches))
    extracted: list[Transaction] = []

    done = 0
    for index, batch in enumerate(batches):
        report(100 * done // len(rows))
        logger.info("Batch %d/%d: %d rows", index + 1, len(batches), len(batch))

        try:
            records = adapter.extract_batch(header, batch, projects)
        except Exception as exc:
            logger.warning(
                "Failed to process batch %d (rows %d-%d): %s",
                index + 1,
                done + 1,
                done + len(batch),
                exc,
            )
            result.warnings.append(
                f"Batch {index + 1} failed, {len(batch)} row(s) dropped: {exc}"
            )
            result.batches_failed += 1
            result.rows_dropped += len(batch)
        else:
            extracted.extend(records)
        done += len(batch)

    report(100)
    result.transactions = _number(extracted)
    return result


def _number(records: list[Transaction]) -> list[Transaction]:
    """Stamp sequential ids on *records* in list order."""
    return [replace(txn, txn_id=i) for i, txn in enumerate(records)]


# ---------------------------------------------------------------------------
# Run state machine
# ---------------------------------------------------------------------------


class StatementRun:
    """Drives :func:`run` and keeps the :class:`RunState` up to date.

    States: ``idle`` -> ``running`` -> ``done``, or back to ``idle`` when
    the run fails as a whole.  Progress values are forwarded to the
    optional *listener* and never go backwards within a run.
    """

    def __init__(
        self,
        adapter: ExtractionAdapter,
        batch_size: int = DEFAULT_BATCH_SIZE,
        listener: ProgressCallback | None = None,
    ) -> None:
        self.adapter = adapter
        self.batch_size = batch_size
        self.listener = listener
        self.state = RunState()

    def _on_progress(self, progress: int) -> None:
        if progress < self.state.progress:
            return
        self.state.progress = progress
        if self.listener is not None:
            self.listener(progress)

    def _reset(self) -> None:
        self.state.status = "idle"
        self.state.is_processing = False
        self.state.progress = 0

    def start(self, csv_text: str, projects: Sequence[str]) -> RunResult:
        """Run one statement to completion.

        Raises:
            RunFailedError: If the statement has no data rows, or if an
                unexpected error escapes the batch loop.  The state is
                reset to idle with progress 0.
        """
        self.state.status = "running"
        self.state.is_processing = True
        self.state.progress = 0

        try:
            if split_statement(csv_text) is None:
                raise RunFailedError("Statement has no data rows")
            result = run(
                csv_text,
                projects,
                self.adapter,
                on_progress=self._on_progress,
                batch_size=self.batch_size,
            )
        except RunFailedError:
            self._reset()
            raise
        except Exception as exc:
            logger.error("Processing failed: %s", exc)
            self._reset()
            raise RunFailedError(str(exc)) from exc

        self.state.transactions = result.transactions
        self.state.status = "done"
        self.state.is_processing = False
        return result
