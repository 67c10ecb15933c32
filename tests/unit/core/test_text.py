# tests/unit/core/test_text.py
"""Tests for message and context normalization."""

from hypothesis import given
from hypothesis import strategies as st

from sinkhub.core.text import normalize_string, normalize_value


class TestNormalizeString:
    """Tests for normalize_string."""

    def test_quotes_are_substituted(self) -> None:
        assert normalize_string('He said "hi" and \'bye\'') == "He said “hi“ and `bye`"

    def test_comparisons_survive_markup_stripping(self) -> None:
        """<= and >= are substituted before tags are stripped."""
        assert normalize_string("a <= b >= c") == "a ≤ b ≥ c"

    def test_tags_are_stripped(self) -> None:
        assert normalize_string("<b>bold</b> text") == "bold text"

    def test_script_and_style_blocks_removed_with_content(self) -> None:
        text = "before<script type=x>alert(1)</script><style>p{}</style> after"
        assert normalize_string(text) == "before after"

    def test_surrounding_whitespace_trimmed(self) -> None:
        assert normalize_string("  padded \n") == "padded"

    @given(st.text())
    def test_idempotent(self, text: str) -> None:
        """Normalizing twice gives the same result as once."""
        once = normalize_string(text)
        assert normalize_string(once) == once


class TestNormalizeValue:
    """Tests for recursive normalize_value."""

    def test_recurses_into_nested_structures(self) -> None:
        value = {"a": "<i>x</i>", "b": ["'q'", {"c": " y "}], "n": 3, "none": None}
        assert normalize_value(value) == {"a": "x", "b": ["`q`", {"c": "y"}], "n": 3, "none": None}

    def test_keys_left_untouched(self) -> None:
        assert normalize_value({"<k>": "v"}) == {"<k>": "v"}

    def test_tuples_become_lists(self) -> None:
        assert normalize_value(("a", 1)) == ["a", 1]
