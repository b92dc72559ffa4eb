"""
Tests for description and date normalization.
"""

from unittest.mock import MagicMock

import pytest

from invoice_recon.exceptions import ModelCallError
from invoice_recon.normalizers import (
    format_date,
    is_output_date,
    normalize_date,
    normalize_description,
)


class TestNormalizeDescription:
    """Tests for Latin-only, sentence-cased descriptions."""

    def test_drops_cyrillic_and_digits(self):
        assert normalize_description("Тормозные Brake Pads 123") == "Brake pads"

    def test_collapses_whitespace(self):
        assert normalize_description("  BRAKE   DISC  front ") == "Brake disc front"

    def test_punctuation_removed(self):
        assert normalize_description("Oil-filter, 5W/30") == "Oilfilter w"

    def test_nothing_latin_left(self):
        assert normalize_description("Тормозные колодки 40") == ""

    def test_empty_and_none(self):
        assert normalize_description("") == ""
        assert normalize_description(None) == ""


class TestFormatDate:
    """Tests for pattern-based date formatting."""

    @pytest.mark.parametrize("raw, expected", [
        ("2025-03-20", "20/03/2025"),
        ("20.03.2025", "20/03/2025"),
        ("20-03-2025", "20/03/2025"),
        ("20/03/2025", "20/03/2025"),
        ("Dec.10, 2024", "10/12/2024"),
        ("DEC.10TH, 2024", "10/12/2024"),
        ("December.1st, 2024", "01/12/2024"),
    ])
    def test_known_patterns(self, raw, expected):
        assert format_date(raw) == expected

    def test_unknown_pattern_returned_unchanged(self):
        assert format_date("sometime in March") == "sometime in March"

    def test_none(self):
        assert format_date(None) == ""

    def test_custom_formats(self):
        assert format_date("03/20/2025", ["%m/%d/%Y"]) == "20/03/2025"


class TestIsOutputDate:
    """Tests for the DD/MM/YYYY check."""

    def test_valid(self):
        assert is_output_date("18/03/2025") is True

    def test_wrong_shape(self):
        assert is_output_date("18/3/2025") is False
        assert is_output_date("2025-03-18") is False

    def test_impossible_date(self):
        assert is_output_date("31/02/2025") is False


class TestNormalizeDate:
    """Tests for model-backed date normalization."""

    @pytest.fixture
    def model(self) -> MagicMock:
        client = MagicMock()
        client.complete.return_value = "18/03/2025"
        return client

    def test_valid_reply(self, model):
        assert normalize_date("3/18/25", model) == "18/03/2025"
        prompt = model.complete.call_args[0][0]
        assert "3/18/25" in prompt

    def test_quoted_reply(self, model):
        model.complete.return_value = '"10/12/2024"\n'
        assert normalize_date("DEC.10TH, 2024", model) == "10/12/2024"

    def test_unusable_reply_returns_input(self, model):
        model.complete.return_value = "The date is March 18th"
        assert normalize_date("  3/18/25 ", model) == "3/18/25"

    def test_invalid_calendar_date_returns_input(self, model):
        model.complete.return_value = "31/02/2025"
        assert normalize_date("Feb 31, 2025", model) == "Feb 31, 2025"

    def test_model_failure_returns_input(self, model):
        model.complete.side_effect = ModelCallError("rate limited")
        assert normalize_date("3/18/25", model) == "3/18/25"

    def test_empty_input_skips_model(self, model):
        assert normalize_date("", model) == ""
        assert normalize_date(None, model) == ""
        model.complete.assert_not_called()
