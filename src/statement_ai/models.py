"""Core data models for Statement AI.

This module defines the dataclasses shared by every stage of a run: the
extracted :class:`Transaction`, the orchestrator's :class:`RunResult` and
:class:`RunState`, and the application configuration.  It has zero internal
imports -- everything depends on it, but it depends on nothing within the
package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

# Filter sentinel meaning "no filter applied".  Never equal to a group name.
SHOW_ALL = None

# Group names used when a transaction has no supplier or no project.
UNKNOWN_SUPPLIER = "Unknown"
UNASSIGNED_PROJECT = "Unassigned"

# Placeholder id carried by adapter output until the orchestrator numbers it.
UNNUMBERED = -1


class GroupBy(str, Enum):
    """Grouping dimension for the dashboard."""

    SUPPLIER = "supplier"
    PROJECT = "project"


@dataclass(frozen=True)
class Transaction:
    """A single statement row as interpreted by the extraction adapter.

    Transactions are immutable once the orchestrator has numbered them.
    The dashboard never reorders or merges them: two rows with identical
    content stay two entries with two ids.

    Attributes:
        txn_id: Sequential identifier assigned by the orchestrator in final
            list order, starting at 0.  Selection state is keyed by this id.
            Adapter output carries ``UNNUMBERED`` until it is stamped.
        date: Date string from the statement, or empty.  Passed through
            without format validation.
        original_description: Verbatim description text from the source row.
        supplier: Human-readable supplier name.  May be empty; the
            aggregation layer reports empty suppliers as ``"Unknown"``.
        project: One of the configured project names, or ``None``.
        amount: Non-negative spend amount (absolute value of the debit).
    """

    txn_id: int
    date: str
    original_description: str
    supplier: str
    project: str | None
    amount: Decimal


@dataclass
class RunResult:
    """Return type of one orchestrator run.

    Attributes:
        transactions: Concatenated records of every successful batch, in
            batch order, numbered sequentially.
        warnings: Non-fatal issues, such as failed batches that were dropped.
        errors: Reserved for fatal per-item problems reported by callers.
        batches_total: Number of batches the data rows were split into.
        batches_failed: Number of batches whose adapter call failed.
        rows_dropped: Number of data rows that belonged to failed batches.
    """

    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    batches_total: int = 0
    batches_failed: int = 0
    rows_dropped: int = 0


@dataclass
class RunState:
    """Observable state of the upload-to-dashboard cycle.

    Attributes:
        status: ``"idle"``, ``"running"`` or ``"done"``.
        is_processing: True while a run is in progress.
        progress: Integer percentage, 0-100.  Non-decreasing within a run.
        transactions: Result of the most recent successful run.  Replaced
            wholesale by every run, never merged.
    """

    status: str = "idle"
    is_processing: bool = False
    progress: int = 0
    transactions: list[Transaction] = field(default_factory=list)


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        data_dir: Directory holding the persisted project list.
        default_projects: Seed project list used when nothing is persisted.
        batch_size: Number of statement rows sent per extraction call.
        llm_provider: LLM provider name. "anthropic" or "none".
        llm_model: Model identifier, e.g. "claude-sonnet-4-20250514".
        llm_api_key_env: Name of the environment variable containing
            the API key.
        llm_max_tokens: Maximum tokens in one LLM response.
        llm_timeout: HTTP timeout in seconds for one extraction call.
    """

    data_dir: str = ".statement-ai"
    default_projects: list[str] = field(default_factory=list)
    batch_size: int = 15
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_api_key_env: str = "ANTHROPIC_API_KEY"
    llm_max_tokens: int = 4096
    llm_timeout: float = 60.0
