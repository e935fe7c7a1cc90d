"""
Tests for the TOON encoder and output language instructions.
"""

import pytest

from ai_builder.prompt.language import (
    LANGUAGE_NAMES,
    build_language_instruction,
    language_name,
)
from ai_builder.prompt.toon import encode_value, format_to_toon


class TestFormatToToon:
    """Test format_to_toon()."""

    def test_header_and_rows(self):
        rows = [{"name": "Ada", "role": "Engineer"}, {"name": "Alan", "role": "Scientist"}]

        block = format_to_toon("people", rows, ["name", "role"])

        assert block == "people[2]{name,role}:\n  Ada,Engineer\n  Alan,Scientist"

    def test_missing_cells_are_empty(self):
        assert format_to_toon("x", [{"a": 1}], ["a", "b"]) == "x[1]{a,b}:\n  1,"

    def test_no_rows(self):
        assert format_to_toon("x", [], ["a"]) == ""

    def test_values_with_delimiters_are_quoted(self):
        assert encode_value("a, b") == '"a, b"'
        assert encode_value("line\nbreak") == '"line\\nbreak"'
        assert encode_value(" padded") == '" padded"'
        assert encode_value("plain") == "plain"
        assert encode_value(True) == "true"
        assert encode_value(None) == ""


class TestLanguage:
    """Test language helpers."""

    def test_known_languages(self):
        assert len(LANGUAGE_NAMES) == 30
        assert language_name("fa") == "Persian (Farsi)"
        assert language_name("FR") == "French"

    def test_unknown_language_is_uppercased(self):
        assert language_name("xx") == "XX"
        assert "All output must be in XX (XX)" in build_language_instruction("xx")

    @pytest.mark.parametrize("code", [None, "", "text", "en", "EN"])
    def test_no_instruction(self, code):
        assert build_language_instruction(code) == ""

    def test_instruction_keeps_technical_terms_in_english(self):
        block = build_language_instruction("de")

        assert block.startswith("\n\nIMPORTANT OUTPUT LANGUAGE REQUIREMENT:\n")
        assert "All output must be in German (DE)" in block
        assert "API, JSON, HTTP" in block
        assert block.endswith("Ensure natural, fluent German while preserving essential English technical terms.")
