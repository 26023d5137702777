"""Shared pytest fixtures for Statement AI tests.

Provides reusable fixtures for:
- sample_statement: realistic bank statement CSV text with debit and
  credit columns, quoted descriptions and blank lines.
- FakeAdapter / fake_adapter: a deterministic extraction adapter that
  records every call and can be told to fail on chosen batches.
- memory_store: an in-process key-value store.
- tmp_project_dir: a temporary working directory with a config.toml.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from pathlib import Path

import pytest

from statement_ai.llm import ExtractionError
from statement_ai.models import UNNUMBERED, Transaction
from statement_ai.projects import MemoryStore

SAMPLE_STATEMENT = """\
Date,Description,Debit,Credit
2024-03-01,"AMZN Mktp US*13423 Alpha Upgrade",120.50,
2024-03-02,Starbucks Store #222,4.75,

2024-03-03,"ACME Hardware, Inc 5512 Beta Rollout",89.99,
2024-03-04,Payroll Deposit,,2500.00
2024-03-05,Starbucks Store #222,4.75,
"""


class FakeAdapter:
    """Extraction adapter that echoes each row back as one transaction.

    The row's second field is used as the description and the third as
    the amount.  Batches whose 0-based index is in *fail_on* raise
    :class:`ExtractionError`.
    """

    def __init__(self, fail_on: Sequence[int] = ()) -> None:
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, list[str], list[str]]] = []

    def extract_batch(
        self,
        header: str,
        rows: Sequence[str],
        projects: Sequence[str],
    ) -> list[Transaction]:
        index = len(self.calls)
        self.calls.append((header, list(rows), list(projects)))
        if index in self.fail_on:
            raise ExtractionError(f"batch {index} failed")
        return [
            Transaction(
                txn_id=UNNUMBERED,
                date="",
                original_description=row,
                supplier=row.split(",")[0],
                project=None,
                amount=Decimal("1"),
            )
            for row in rows
        ]


@pytest.fixture
def sample_statement() -> str:
    """Bank statement CSV text with five data rows and one blank line."""
    return SAMPLE_STATEMENT


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    """A FakeAdapter that never fails."""
    return FakeAdapter()


@pytest.fixture
def memory_store() -> MemoryStore:
    """An empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def tmp_project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary working directory with an offline config.toml.

    The process cwd is switched to the directory for the duration of the
    test, so CLI commands find the config and data directory there.
    """
    project = tmp_path / "statement-project"
    project.mkdir()
    (project / "config.toml").write_text(
        """\
[general]
data_dir = ".statement-ai"
default_projects = ["Alpha Upgrade"]

[processing]
batch_size = 2

[llm]
provider = "none"
""",
        encoding="utf-8",
    )
    monkeypatch.chdir(project)
    return project


@pytest.fixture
def make_adapter():
    """Factory for FakeAdapter instances, e.g. ``make_adapter(fail_on=[1])``."""
    return FakeAdapter
