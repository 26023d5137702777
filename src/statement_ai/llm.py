"""Extraction adapter interface and implementations.

Defines the ExtractionAdapter protocol for turning raw statement rows into
transaction records, plus two implementations:
- AnthropicAdapter: sends one batch per request to the Anthropic Messages
  API via httpx.
- HeuristicAdapter: deterministic offline extraction (for --no-llm mode).

Unlike a best-effort enrichment call, an extraction call either returns a
fully validated batch or raises :class:`ExtractionError`.  The orchestrator
decides what a failed batch means for the run.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx

from statement_ai.models import UNNUMBERED, Transaction
from statement_ai.splitter import split_fields

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"

_REQUIRED_KEYS = ("originalDescription", "supplier", "amount")


class ExtractionError(Exception):
    """An extraction call failed as a whole and produced no records."""


class ExtractionAdapter(Protocol):
    """Protocol for batch extraction of statement rows.

    Implementations receive the statement header, a batch of raw data
    lines, and the configured project names.  They return one
    :class:`Transaction` per row they could interpret; the count is not
    required to match the input exactly.  Returned transactions carry
    ``txn_id == UNNUMBERED``.
    """

    def extract_batch(
        self,
        header: str,
        rows: Sequence[str],
        projects: Sequence[str],
    ) -> list[Transaction]:
        """Extract transactions from one batch of statement rows.

        Args:
            header: The statement's header line.
            rows: Raw CSV data lines for this batch.
            projects: Known project names, in configured order.

        Returns:
            Extracted transactions.  Empty list for an empty batch.

        Raises:
            ExtractionError: On any transport, credential, or response
                shape failure.
        """
        ...


def _build_prompt(header: str, rows: Sequence[str], projects: Sequence[str]) -> str:
    """Construct the extraction prompt for one batch.

    Args:
        header: CSV header line, included so the model can identify columns.
        rows: Raw CSV data lines.
        projects: Known project names.

    Returns:
        The fully formatted prompt string.
    """
    csv_block = "\n".join([header, *rows])
    return (
        "You are an expert financial data analyst.\n"
        "Analyze the following CSV bank statement fragment.\n"
        "\n"
        "## Tasks\n"
        "1. Amount: use the 'Debit' column if one exists. Ignore 'Credit' unless\n"
        "   there is no 'Debit' column. Return it as a positive number.\n"
        "2. Supplier: the supplier is usually at the start of the description,\n"
        "   followed by a number (invoice number, store ID). Return the text\n"
        "   before that number.\n"
        '   Example: "AMZN Mktp US*13423" -> "AMZN Mktp US".\n'
        '   Example: "Starbucks Store #222" -> "Starbucks".\n'
        "3. Project: if the description contains exactly one of these project\n"
        f"   names, return it verbatim: {json.dumps(list(projects))}.\n"
        "   Otherwise return null. Do not return partial or similar names.\n"
        "\n"
        "## CSV Data\n"
        f"{csv_block}\n"
        "\n"
        "## Response Format\n"
        "Return a JSON array with one element per data row:\n"
        '{"date": "YYYY-MM-DD", "originalDescription": "...", "supplier": "...", '
        '"project": "..." or null, "amount": 12.34}\n'
        "\n"
        "originalDescription must be the description text exactly as it appears."
    )


def _to_amount(value: object) -> Decimal:
    """Convert a JSON amount to a non-negative Decimal."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ExtractionError(f"amount is not numeric: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ExtractionError(f"amount is not numeric: {value!r}") from exc
    if not amount.is_finite():
        raise ExtractionError(f"amount is not finite: {value!r}")
    return abs(amount)


def _parse_response(text: str, projects: Sequence[str]) -> list[Transaction]:
    """Extract and validate the JSON array from the LLM response text.

    The LLM may wrap the JSON in markdown code fences or include
    explanatory text, so the array is located by its first ``[`` and last
    ``]``.  Every element must carry ``originalDescription``, ``supplier``
    and a numeric ``amount``; ``date`` and ``project`` are optional.  A
    ``project`` is kept only when it is what :func:`match_project` finds in
    the element's ``originalDescription``; anything else is dropped to None.

    Args:
        text: Raw text from the LLM response.
        projects: Known project names.

    Returns:
        Validated, unnumbered transactions in response order.

    Raises:
        ExtractionError: If the text holds no JSON array, the JSON is
            malformed, or any element has the wrong shape.
    """
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end <= start:
        raise ExtractionError("LLM response does not contain a JSON array")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"Failed to parse JSON from LLM response: {exc}") from exc

    if not isinstance(data, list):
        raise ExtractionError("LLM response JSON is not a list")

    records: list[Transaction] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ExtractionError(f"Item {index} is not an object: {item!r}")
        missing = [key for key in _REQUIRED_KEYS if item.get(key) is None]
        if missing:
            raise ExtractionError(f"Item {index} is missing {', '.join(missing)}")
        if not isinstance(item["originalDescription"], str) or not isinstance(
            item["supplier"], str
        ):
            raise ExtractionError(f"Item {index} has non-string text fields")

        project = item.get("project")
        if project is not None and project != match_project(item["originalDescription"], projects):
            logger.debug("Discarding project %r for item %d", project, index)
            project = None

        date = item.get("date")
        records.append(
            Transaction(
                txn_id=UNNUMBERED,
                date=str(date) if date is not None else "",
                original_description=item["originalDescription"],
                supplier=item["supplier"].strip(),
                project=project,
                amount=_to_amount(item["amount"]),
            )
        )
    return records


class AnthropicAdapter:
    """Extraction adapter that calls the Anthropic Messages API via httpx.

    Reads the API key from the environment variable named by
    ``api_key_env``.  Sends one HTTP POST per batch and validates the
    structured JSON response.  Any failure raises :class:`ExtractionError`.

    Args:
        model: The Anthropic model identifier, e.g. "claude-sonnet-4-20250514".
        api_key_env: Name of the environment variable containing the API key.
        max_tokens: Maximum tokens in the LLM response. Default: 4096.
        timeout: HTTP request timeout in seconds. Default: 60.
        temperature: Sampling temperature. Kept low for repeatable extraction.
    """

    def __init__(
        self,
        model: str,
        api_key_env: str,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        temperature: float = 0.1,
    ) -> None:
        self.model = model
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.temperature = temperature

    def extract_batch(
        self,
        header: str,
        rows: Sequence[str],
        projects: Sequence[str],
    ) -> list[Transaction]:
        """Send one batch of statement rows to Anthropic for extraction."""
        if not rows:
            return []

        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            raise ExtractionError(
                f"LLM API key not found in environment variable '{self.api_key_env}'"
            )

        request_body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [
                {
                    "role": "user",
                    "content": _build_prompt(header, rows, projects),
                }
            ],
        }

        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

        logger.debug("Sending %d rows to %s", len(rows), self.model)
        try:
            response = httpx.post(
                ANTHROPIC_API_URL,
                json=request_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionError("LLM request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                f"LLM API returned HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(f"LLM request failed: {exc}") from exc

        # Extract text from the Anthropic response format
        try:
            body = response.json()
            text_parts = [
                block["text"]
                for block in body.get("content", [])
                if block.get("type") == "text"
            ]
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise ExtractionError(f"Failed to extract text from LLM response: {exc}") from exc

        response_text = "\n".join(text_parts)
        if not response_text:
            raise ExtractionError("LLM response contained no text content")

        return _parse_response(response_text, projects)


# ---------------------------------------------------------------------------
# Offline extraction
# ---------------------------------------------------------------------------

_DEBIT_COLUMNS = ("debit", "debit amount", "withdrawal", "withdrawals", "money out")
_AMOUNT_COLUMNS = ("amount", "transaction amount", "value")
_CREDIT_COLUMNS = ("credit", "credit amount", "deposit", "deposits", "money in")
_DESCRIPTION_COLUMNS = ("description", "details", "memo", "narrative", "payee", "name")
_DATE_COLUMNS = ("date", "transaction date", "posting date", "post date", "posted date")

# Supplier names end where a store number, invoice id or reference begins.
_SUPPLIER_SUFFIX = re.compile(r"\s*[#*]|\s+\d")


def _find_column(columns: list[str], candidates: Sequence[str]) -> int | None:
    for name in candidates:
        if name in columns:
            return columns.index(name)
    return None


def _parse_amount(raw: str) -> Decimal | None:
    cleaned = re.sub(r"[^\d.\-]", "", raw)
    if not cleaned or cleaned in ("-", "."):
        return None
    try:
        return abs(Decimal(cleaned))
    except InvalidOperation:
        return None


def extract_supplier(description: str) -> str:
    """Strip trailing store numbers and reference ids from *description*.

    >>> extract_supplier("AMZN Mktp US*13423")
    'AMZN Mktp US'
    >>> extract_supplier("Starbucks Store #222")
    'Starbucks Store'
    """
    head = _SUPPLIER_SUFFIX.split(description.strip(), maxsplit=1)[0]
    head = head.rstrip(" -/*#")
    return head or description.strip()


def match_project(description: str, projects: Sequence[str]) -> str | None:
    """Return the configured project named verbatim in *description*.

    Matching is case-sensitive substring containment.  Exactly one
    configured name must be contained; a description naming none or
    several of them has no project.
    """
    found = {name for name in projects if name and name in description}
    if len(found) != 1:
        return None
    return found.pop()


class HeuristicAdapter:
    """Deterministic offline extraction adapter for --no-llm mode.

    Applies the same rules the LLM is asked to follow, by column name
    lookup on the header: debit (or amount) over credit, supplier as the
    description up to its first numeric or id suffix, project by exact
    containment.  Rows with no parseable amount are skipped.
    """

    def extract_batch(
        self,
        header: str,
        rows: Sequence[str],
        projects: Sequence[str],
    ) -> list[Transaction]:
        """Extract transactions from *rows* using header column names."""
        if not rows:
            return []

        columns = [name.lower() for name in split_fields(header)]
        amount_col = _find_column(columns, _DEBIT_COLUMNS)
        if amount_col is None:
            amount_col = _find_column(columns, _AMOUNT_COLUMNS)
        if amount_col is None:
            amount_col = _find_column(columns, _CREDIT_COLUMNS)
        if amount_col is None:
            raise ExtractionError(f"No amount column in header: {header!r}")
        desc_col = _find_column(columns, _DESCRIPTION_COLUMNS)
        date_col = _find_column(columns, _DATE_COLUMNS)

        records: list[Transaction] = []
        for row in rows:
            fields = split_fields(row)

            def cell(col: int | None) -> str:
                if col is None or col >= len(fields):
                    return ""
                return fields[col]

            amount = _parse_amount(cell(amount_col))
            if amount is None:
                logger.debug("Skipping row without amount: %r", row)
                continue

            description = cell(desc_col) if desc_col is not None else row
            records.append(
                Transaction(
                    txn_id=UNNUMBERED,
                    date=cell(date_col),
                    original_description=description,
                    supplier=extract_supplier(description),
                    project=match_project(description, projects),
                    amount=amount,
                )
            )
        return records
