"""Tests for the generation boundary."""

from __future__ import annotations

import pytest
from fakes import make_abstract

from foreclosure_abstract.exceptions import GenerationBlockedError
from foreclosure_abstract.generation import (
    build_template_data,
    generate_document,
    output_file_name,
    render_plain_text,
)


class TestTemplateData:
    def test_placeholders(self) -> None:
        data = build_template_data(make_abstract())
        assert data["GRANTOR-NAME"] == "Lone Star Holdings LLC"
        assert data["NOTE-AMOUNT"] == "1234567"
        assert data["SUB-TRUSTEES"] == "Jane Smith, Robert Lee Jones"
        assert data["LEGAL DESCRIPTION"].startswith("SITUATED IN COLLIN COUNTY")
        assert data["LEGAL-DESCRIPTION"].startswith("BEGINNING AT")
        assert data["GOVERNMENT-ID"] == "123456789"

    def test_missing_values_are_empty_strings(self) -> None:
        data = build_template_data(make_abstract(ein=None, jurisdiction_trustees=None))
        assert data["EIN"] == ""
        assert data["SUB-TRUSTEES"] == ""

    def test_metes_falls_back_to_recording(self) -> None:
        data = build_template_data(make_abstract(legal_description_metes_bounds=None))
        assert data["LEGAL-DESCRIPTION"] == data["LEGAL DESCRIPTION"]


class TestGenerateDocument:
    def test_clean_abstract_renders(self) -> None:
        output = generate_document(make_abstract()).decode("utf-8")
        assert "COUNTY: Collin County, Texas\n" in output
        assert "HOURS OF SALES: 10am-4pm\n" in output

    def test_blocked_by_validation_errors(self) -> None:
        with pytest.raises(GenerationBlockedError) as exc:
            generate_document(make_abstract(trustee=None))
        assert "Missing required field: trustee" in exc.value.errors

    def test_custom_renderer(self) -> None:
        seen: list[dict[str, str]] = []

        def renderer(data: dict[str, str]) -> bytes:
            seen.append(data)
            return b"rendered"

        assert generate_document(make_abstract(), renderer) == b"rendered"
        assert seen[0]["TRUSTEE"] == "Pat Trustee"

    def test_plain_text_renderer(self) -> None:
        assert render_plain_text({"A": "1", "B": ""}) == b"A: 1\nB: \n"


def test_output_file_name() -> None:
    assert output_file_name(make_abstract()) == "File Abstract - 1234 Elm Street, McKinney, Texas 75069.txt"
    assert output_file_name(make_abstract(common_address=None), "docx") == "File Abstract - Generated.docx"
