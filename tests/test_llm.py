"""Tests for statement_ai.llm -- extraction adapters, prompt, and response validation.

All tests use mocked HTTP responses. No real API calls are made.
"""

from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest

from statement_ai.llm import (
    AnthropicAdapter,
    ExtractionError,
    HeuristicAdapter,
    _build_prompt,
    _parse_response,
    extract_supplier,
    match_project,
)
from statement_ai.models import UNNUMBERED

# ---------------------------------------------------------------------------
# Shared test data
# ---------------------------------------------------------------------------

HEADER = "Date,Description,Debit,Credit"
ROWS = [
    '2024-03-01,"AMZN Mktp US*13423 Alpha Upgrade",120.50,',
    "2024-03-02,Starbucks Store #222,4.75,",
]
PROJECTS = ["Alpha Upgrade", "Beta Rollout"]

SAMPLE_RECORDS = [
    {
        "date": "2024-03-01",
        "originalDescription": "AMZN Mktp US*13423 Alpha Upgrade",
        "supplier": "AMZN Mktp US",
        "project": "Alpha Upgrade",
        "amount": 120.5,
    },
    {
        "date": "2024-03-02",
        "originalDescription": "Starbucks Store #222",
        "supplier": "Starbucks",
        "project": None,
        "amount": -4.75,
    },
]

API_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _make_anthropic_response(records: list[dict]) -> dict:
    """Build a mock Anthropic Messages API response body."""
    return {
        "id": "msg_test123",
        "type": "message",
        "role": "assistant",
        "content": [
            {
                "type": "text",
                "text": json.dumps(records),
            }
        ],
        "model": "claude-sonnet-4-20250514",
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 100, "output_tokens": 50},
    }


# ---------------------------------------------------------------------------
# _build_prompt tests
# ---------------------------------------------------------------------------


class TestBuildPrompt:
    """Tests for prompt construction."""

    def test_contains_header_and_rows(self):
        prompt = _build_prompt(HEADER, ROWS, PROJECTS)
        assert "## CSV Data\n" + HEADER + "\n" + ROWS[0] + "\n" + ROWS[1] in prompt

    def test_contains_project_names_as_json(self):
        prompt = _build_prompt(HEADER, ROWS, PROJECTS)
        assert '["Alpha Upgrade", "Beta Rollout"]' in prompt

    def test_contains_extraction_rules(self):
        prompt = _build_prompt(HEADER, ROWS, PROJECTS)
        assert "'Debit'" in prompt
        assert "'Credit'" in prompt
        assert "positive number" in prompt
        assert "null" in prompt

    def test_contains_response_format(self):
        prompt = _build_prompt(HEADER, ROWS, PROJECTS)
        assert "## Response Format" in prompt
        assert "JSON array" in prompt
        assert '"originalDescription"' in prompt

    def test_empty_projects(self):
        prompt = _build_prompt(HEADER, ROWS, [])
        assert "[]" in prompt


# ---------------------------------------------------------------------------
# _parse_response tests
# ---------------------------------------------------------------------------


class TestParseResponse:
    """Tests for response validation."""

    def test_clean_json_array(self):
        result = _parse_response(json.dumps(SAMPLE_RECORDS), PROJECTS)
        assert len(result) == 2
        first = result[0]
        assert first.txn_id == UNNUMBERED
        assert first.date == "2024-03-01"
        assert first.original_description == "AMZN Mktp US*13423 Alpha Upgrade"
        assert first.supplier == "AMZN Mktp US"
        assert first.project == "Alpha Upgrade"
        assert first.amount == Decimal("120.5")

    def test_amount_made_absolute(self):
        result = _parse_response(json.dumps(SAMPLE_RECORDS), PROJECTS)
        assert result[1].amount == Decimal("4.75")

    def test_json_in_code_fence(self):
        text = "Here you go:\n\n```json\n" + json.dumps(SAMPLE_RECORDS) + "\n```"
        assert len(_parse_response(text, PROJECTS)) == 2

    def test_optional_fields_may_be_missing(self):
        text = json.dumps([{"originalDescription": "X 1", "supplier": "X", "amount": 3}])
        [txn] = _parse_response(text, PROJECTS)
        assert txn.date == ""
        assert txn.project is None

    def test_numeric_string_amount_accepted(self):
        text = json.dumps([{"originalDescription": "X", "supplier": "X", "amount": "12.30"}])
        [txn] = _parse_response(text, PROJECTS)
        assert txn.amount == Decimal("12.30")

    def test_unknown_project_dropped(self):
        """A project that is not a configured name verbatim becomes None."""
        text = json.dumps(
            [
                {"originalDescription": "a", "supplier": "A", "amount": 1, "project": "Alpha"},
                {"originalDescription": "b", "supplier": "B", "amount": 1, "project": "alpha upgrade"},
            ]
        )
        result = _parse_response(text, PROJECTS)
        assert [t.project for t in result] == [None, None]

    def test_project_not_in_description_dropped(self):
        text = json.dumps(
            [{"originalDescription": "Corner Deli 42", "supplier": "Corner Deli", "project": "Alpha", "amount": 8}]
        )
        [txn] = _parse_response(text, ["Alpha"])
        assert txn.project is None

    def test_project_dropped_when_several_names_contained(self):
        text = json.dumps(
            [{"originalDescription": "Alpha Beta shared job", "supplier": "X", "project": "Alpha", "amount": 10}]
        )
        [txn] = _parse_response(text, ["Alpha", "Beta"])
        assert txn.project is None

    def test_empty_array(self):
        assert _parse_response("[]", PROJECTS) == []

    def test_no_json_array_raises(self):
        with pytest.raises(ExtractionError):
            _parse_response("I cannot help with that.", PROJECTS)

    def test_invalid_json_raises(self):
        with pytest.raises(ExtractionError):
            _parse_response('[{"supplier": incomplete', PROJECTS)

    def test_non_list_json_raises(self):
        with pytest.raises(ExtractionError):
            _parse_response('{"a": [1]}', PROJECTS)

    def test_missing_required_key_raises(self):
        text = json.dumps([{"originalDescription": "X", "amount": 1}])
        with pytest.raises(ExtractionError, match="supplier"):
            _parse_response(text, PROJECTS)

    def test_null_amount_raises(self):
        text = json.dumps([{"originalDescription": "X", "supplier": "X", "amount": None}])
        with pytest.raises(ExtractionError):
            _parse_response(text, PROJECTS)

    def test_non_numeric_amount_raises(self):
        text = json.dumps([{"originalDescription": "X", "supplier": "X", "amount": "lots"}])
        with pytest.raises(ExtractionError):
            _parse_response(text, PROJECTS)

    def test_boolean_amount_raises(self):
        text = json.dumps([{"originalDescription": "X", "supplier": "X", "amount": True}])
        with pytest.raises(ExtractionError):
            _parse_response(text, PROJECTS)

    def test_non_dict_item_raises(self):
        with pytest.raises(ExtractionError):
            _parse_response(json.dumps(["not a record"]), PROJECTS)

    def test_one_bad_item_fails_whole_batch(self):
        records = SAMPLE_RECORDS + [{"supplier": "missing description", "amount": 1}]
        with pytest.raises(ExtractionError):
            _parse_response(json.dumps(records), PROJECTS)


# ---------------------------------------------------------------------------
# AnthropicAdapter tests
# ---------------------------------------------------------------------------


class TestAnthropicAdapter:
    """Tests for the AnthropicAdapter with mocked HTTP responses."""

    def _make_adapter(self, api_key_env: str = "TEST_ANTHROPIC_KEY") -> AnthropicAdapter:
        return AnthropicAdapter(
            model="claude-sonnet-4-20250514",
            api_key_env=api_key_env,
        )

    def test_successful_extraction(self):
        """Adapter sends correct request and parses successful response."""
        adapter = self._make_adapter()
        mock_response = httpx.Response(
            status_code=200,
            json=_make_anthropic_response(SAMPLE_RECORDS),
            request=API_REQUEST,
        )
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_ai.llm.httpx.post", return_value=mock_response) as mock_post,
        ):
            result = adapter.extract_batch(HEADER, ROWS, PROJECTS)

        assert [t.supplier for t in result] == ["AMZN Mktp US", "Starbucks"]
        assert result[0].project == "Alpha Upgrade"

        mock_post.assert_called_once()
        call_kwargs = mock_post.call_args.kwargs
        assert call_kwargs["headers"]["x-api-key"] == "sk-ant-test-key"
        assert call_kwargs["headers"]["anthropic-version"] == "2023-06-01"
        assert call_kwargs["timeout"] == 60.0

        body = call_kwargs["json"]
        assert body["model"] == "claude-sonnet-4-20250514"
        assert body["max_tokens"] == 4096
        assert body["temperature"] == 0.1
        prompt = body["messages"][0]["content"]
        assert ROWS[0] in prompt
        assert "Alpha Upgrade" in prompt

    def test_empty_batch_returns_empty_without_call(self):
        adapter = self._make_adapter()
        with patch("statement_ai.llm.httpx.post") as mock_post:
            assert adapter.extract_batch(HEADER, [], PROJECTS) == []
        mock_post.assert_not_called()

    def test_missing_api_key_raises(self):
        adapter = self._make_adapter(api_key_env="NONEXISTENT_KEY_VAR")
        with (
            patch.dict("os.environ", {}, clear=True),
            patch("statement_ai.llm.httpx.post") as mock_post,
        ):
            with pytest.raises(ExtractionError, match="NONEXISTENT_KEY_VAR"):
                adapter.extract_batch(HEADER, ROWS, PROJECTS)
        mock_post.assert_not_called()

    @pytest.mark.parametrize("status_code", [401, 429, 500])
    def test_http_error_raises(self, status_code: int):
        adapter = self._make_adapter()
        mock_response = httpx.Response(
            status_code=status_code,
            text="error",
            request=API_REQUEST,
        )
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_ai.llm.httpx.post", return_value=mock_response),
        ):
            with pytest.raises(ExtractionError, match=str(status_code)):
                adapter.extract_batch(HEADER, ROWS, PROJECTS)

    def test_timeout_raises(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch(
                "statement_ai.llm.httpx.post",
                side_effect=httpx.TimeoutException("Connection timed out"),
            ),
        ):
            with pytest.raises(ExtractionError, match="timed out"):
                adapter.extract_batch(HEADER, ROWS, PROJECTS)

    def test_connection_error_raises(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch(
                "statement_ai.llm.httpx.post",
                side_effect=httpx.ConnectError("connection refused"),
            ),
        ):
            with pytest.raises(ExtractionError):
                adapter.extract_batch(HEADER, ROWS, PROJECTS)

    def test_no_text_content_raises(self):
        adapter = self._make_adapter()
        mock_response = httpx.Response(
            status_code=200,
            json={"content": []},
            request=API_REQUEST,
        )
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_ai.llm.httpx.post", return_value=mock_response),
        ):
            with pytest.raises(ExtractionError, match="no text"):
                adapter.extract_batch(HEADER, ROWS, PROJECTS)

    def test_malformed_records_raise(self):
        adapter = self._make_adapter()
        mock_response = httpx.Response(
            status_code=200,
            json=_make_anthropic_response([{"supplier": "X"}]),
            request=API_REQUEST,
        )
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_ai.llm.httpx.post", return_value=mock_response),
        ):
            with pytest.raises(ExtractionError):
                adapter.extract_batch(HEADER, ROWS, PROJECTS)


# ---------------------------------------------------------------------------
# Offline extraction
# ---------------------------------------------------------------------------


class TestExtractSupplier:
    @pytest.mark.parametrize(
        ("description", "expected"),
        [
            ("AMZN Mktp US*13423", "AMZN Mktp US"),
            ("Starbucks Store #222", "Starbucks Store"),
            ("TARGET        00022186", "TARGET"),
            ("REI.COM  800-426-4840", "REI.COM"),
            ("7-ELEVEN 1234", "7-ELEVEN"),
            ("Netflix", "Netflix"),
            ("#1 Pizza", "#1 Pizza"),
        ],
    )
    def test_suffix_stripped(self, description: str, expected: str):
        assert extract_supplier(description) == expected


class TestMatchProject:
    def test_exact_containment(self):
        assert match_project("AMZN Mktp US*13423 Alpha Upgrade", ["Alpha Upgrade"]) == "Alpha Upgrade"

    def test_no_match_is_none(self):
        assert match_project("Starbucks Store #222", ["Alpha Upgrade"]) is None

    def test_case_sensitive(self):
        assert match_project("alpha upgrade parts", ["Alpha Upgrade"]) is None

    def test_partial_name_not_matched(self):
        assert match_project("Alpha parts", ["Alpha Upgrade"]) is None

    def test_several_names_contained_is_none(self):
        assert match_project("Alpha Beta shared job", ["Alpha", "Beta"]) is None

    def test_overlapping_names_contained_is_none(self):
        assert match_project("Alpha Upgrade kit", ["Alpha", "Alpha Upgrade"]) is None

    def test_duplicate_configured_name_still_one_match(self):
        assert match_project("Alpha kit", ["Alpha", "Alpha"]) == "Alpha"

    def test_empty_project_list(self):
        assert match_project("anything", []) is None


class TestHeuristicAdapter:
    """Tests for the offline HeuristicAdapter."""

    def test_extracts_debit_rows(self):
        result = HeuristicAdapter().extract_batch(HEADER, ROWS, PROJECTS)
        assert len(result) == 2
        first, second = result
        assert first.txn_id == UNNUMBERED
        assert first.date == "2024-03-01"
        assert first.original_description == "AMZN Mktp US*13423 Alpha Upgrade"
        assert first.supplier == "AMZN Mktp US"
        assert first.project == "Alpha Upgrade"
        assert first.amount == Decimal("120.50")
        assert second.supplier == "Starbucks Store"
        assert second.project is None

    def test_row_naming_two_projects_is_unassigned(self):
        result = HeuristicAdapter().extract_batch(
            "Date,Description,Debit", ["2024-01-01,Alpha Beta shared job,10"], ["Alpha", "Beta"]
        )
        assert result[0].project is None

    def test_debit_preferred_over_credit(self):
        rows = ["2024-03-04,Refund,,25.00", "2024-03-05,Shop 1,10.00,99.00"]
        result = HeuristicAdapter().extract_batch(HEADER, rows, [])
        assert [t.amount for t in result] == [Decimal("10.00")]

    def test_amount_column_used_as_absolute_value(self):
        header = "Transaction Date,Description,Amount"
        rows = ["01/02/2024,CHIPOTLE 0423,-12.50", '01/03/2024,"Big Shop, LLC","($1,204.00)"']
        result = HeuristicAdapter().extract_batch(header, rows, [])
        assert [t.amount for t in result] == [Decimal("12.50"), Decimal("1204.00")]
        assert result[1].original_description == "Big Shop, LLC"

    def test_credit_only_statement(self):
        header = "Date,Memo,Credit"
        result = HeuristicAdapter().extract_batch(header, ["2024-01-01,Gift,5"], [])
        assert result[0].amount == Decimal("5")

    def test_no_amount_column_raises(self):
        with pytest.raises(ExtractionError):
            HeuristicAdapter().extract_batch("Date,Description", ["2024-01-01,x"], [])

    def test_empty_batch(self):
        assert HeuristicAdapter().extract_batch(HEADER, [], PROJECTS) == []

    def test_short_row_tolerated(self):
        result = HeuristicAdapter().extract_batch("Description,Debit", ["Lonely"], [])
        assert result == []
