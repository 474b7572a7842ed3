"""
Tests for the merge engine.

The central property: the merged abstract depends on where each value came
from, never on the order in which chunks finished.
"""

from __future__ import annotations

import asyncio
import itertools

import pytest

from foreclosure_abstract.merge import MergeEngine, MergeProvenance, merge_into_abstract, normalize_dollar
from foreclosure_abstract.models import FileAbstract


# ═══════════════════════════════════════════════════════════════════
# Dollar normalization
# ═══════════════════════════════════════════════════════════════════


class TestNormalizeDollar:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$1,234,567.00", "1234567"),
            ("1234567", "1234567"),
            ("1,234,567", "1234567"),
            ("$ 250,000.00 USD", "250000"),
            ("1,250.50", "1250.50"),
            ("about a million", "aboutamillion"),
            ("1E+30", "1" + "0" * 30),
            ("1E+999999999", "1E+999999999"),
            ("NaN", "NaN"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_dollar(raw) == expected


# ═══════════════════════════════════════════════════════════════════
# Pure merge rules
# ═══════════════════════════════════════════════════════════════════


class TestMergeRules:
    def test_fills_empty_fields(self) -> None:
        abstract = FileAbstract()
        changed = merge_into_abstract(abstract, {"county": "Collin County", "trustee": "Pat"}, False)
        assert changed == 2
        assert abstract.county == "Collin County"

    @pytest.mark.parametrize("value", [None, "", "   ", "null", "None", {"nested": 1}])
    def test_empty_and_placeholder_values_ignored(self, value: object) -> None:
        abstract = FileAbstract(county="Collin County")
        assert merge_into_abstract(abstract, {"county": value}, True) == 0
        assert abstract.county == "Collin County"

    def test_unknown_keys_ignored(self) -> None:
        abstract = FileAbstract()
        assert merge_into_abstract(abstract, {"favorite_color": "blue"}, True) == 0

    def test_identity_fields_from_service_ignored(self) -> None:
        abstract = FileAbstract()
        merge_into_abstract(abstract, {"government_id": "123-45-6789", "date_of_birth": "1/1/1970"}, True)
        assert abstract.government_id is None
        assert abstract.date_of_birth is None

    def test_first_non_authoritative_value_wins(self) -> None:
        abstract = FileAbstract()
        provenance = MergeProvenance()
        merge_into_abstract(abstract, {"loan_servicer": "First"}, False, ordinal=0, provenance=provenance)
        merge_into_abstract(abstract, {"loan_servicer": "Second"}, False, ordinal=1, provenance=provenance)
        assert abstract.loan_servicer == "First"

    def test_authoritative_overrides(self) -> None:
        abstract = FileAbstract()
        provenance = MergeProvenance()
        merge_into_abstract(abstract, {"grantor_name": "Lone Star"}, False, ordinal=0, provenance=provenance)
        merge_into_abstract(abstract, {"grantor_name": "Lone Star LLC"}, True, ordinal=3, provenance=provenance)
        assert abstract.grantor_name == "Lone Star LLC"

    def test_funding_package_never_displaces_recorded_legal_description(self) -> None:
        abstract = FileAbstract()
        provenance = MergeProvenance()
        merge_into_abstract(
            abstract, {"legal_description_recording": "RECORDED TEXT"}, True, ordinal=2, provenance=provenance
        )
        merge_into_abstract(
            abstract, {"legal_description_recording": "FUNDING TEXT"}, False, ordinal=0, provenance=provenance
        )
        assert abstract.legal_description_recording == "RECORDED TEXT"

    def test_preexisting_value_yields_only_to_authority(self) -> None:
        abstract = FileAbstract(trustee="Existing")
        merge_into_abstract(abstract, {"trustee": "Funding"}, False)
        assert abstract.trustee == "Existing"
        merge_into_abstract(abstract, {"trustee": "Recorded"}, True)
        assert abstract.trustee == "Recorded"

    def test_note_amount_normalized(self) -> None:
        abstract = FileAbstract()
        merge_into_abstract(abstract, {"note_amount": "$1,234,567.00"}, False)
        assert abstract.note_amount == "1234567"

    def test_same_value_counts_as_no_change(self) -> None:
        abstract = FileAbstract(county="Collin County")
        assert merge_into_abstract(abstract, {"county": "Collin County"}, True) == 0

    def test_numbers_stringified(self) -> None:
        abstract = FileAbstract()
        merge_into_abstract(abstract, {"note_amount": 250000}, False)
        assert abstract.note_amount == "250000"


class TestTrusteeUnion:
    def test_union_preserves_first_appearance(self) -> None:
        abstract = FileAbstract()
        provenance = MergeProvenance()
        merge_into_abstract(
            abstract, {"jurisdiction_trustees": ["B Person", "A Person"]}, False, ordinal=0, provenance=provenance
        )
        merge_into_abstract(
            abstract, {"jurisdiction_trustees": ["A Person", "C Person"]}, False, ordinal=1, provenance=provenance
        )
        assert abstract.jurisdiction_trustees == ["B Person", "A Person", "C Person"]

    def test_case_sensitive(self) -> None:
        abstract = FileAbstract()
        merge_into_abstract(abstract, {"jurisdiction_trustees": ["Jane Smith", "JANE SMITH"]}, False)
        assert abstract.jurisdiction_trustees == ["Jane Smith", "JANE SMITH"]

    def test_single_string_accepted(self) -> None:
        abstract = FileAbstract()
        merge_into_abstract(abstract, {"jurisdiction_trustees": "Jane Smith"}, False)
        assert abstract.jurisdiction_trustees == ["Jane Smith"]

    def test_empty_list_ignored(self) -> None:
        abstract = FileAbstract(jurisdiction_trustees=["Jane Smith"])
        assert merge_into_abstract(abstract, {"jurisdiction_trustees": []}, True) == 0
        assert abstract.jurisdiction_trustees == ["Jane Smith"]


# ═══════════════════════════════════════════════════════════════════
# Arrival-order independence
# ═══════════════════════════════════════════════════════════════════

PARTIALS = [
    # (partial, authoritative, ordinal)
    ({"note_amount": "$1,234,567.00", "grantor_name": "Lone Star", "loan_servicer": "Servicer A",
      "jurisdiction_trustees": ["Jane Smith"]}, False, 0),
    ({"note_amount": None, "loan_servicer": "Servicer B", "county": "Collin County",
      "jurisdiction_trustees": ["Bob Stone", "Jane Smith"]}, False, 1),
    ({"note_amount": "1234567", "grantor_name": "Lone Star Holdings LLC",
      "legal_description_recording": "LOT 7, COLLIN COUNTY"}, True, 2),
]


class TestOrderIndependence:
    def test_every_arrival_order_gives_same_abstract(self) -> None:
        outcomes = []
        for order in itertools.permutations(PARTIALS):
            abstract = FileAbstract()
            provenance = MergeProvenance()
            for partial, authoritative, ordinal in order:
                merge_into_abstract(abstract, partial, authoritative, ordinal=ordinal, provenance=provenance)
            outcomes.append(abstract.model_dump())

        assert all(outcome == outcomes[0] for outcome in outcomes)
        final = outcomes[0]
        assert final["note_amount"] == "1234567"
        assert final["grantor_name"] == "Lone Star Holdings LLC"
        assert final["loan_servicer"] == "Servicer A"
        assert final["jurisdiction_trustees"] == ["Jane Smith", "Bob Stone"]


class TestMergeEngine:
    def test_concurrent_merges_serialized(self) -> None:
        async def scenario() -> FileAbstract:
            engine = MergeEngine()
            await asyncio.gather(
                *(
                    engine.merge(partial, authoritative=authoritative, ordinal=ordinal)
                    for partial, authoritative, ordinal in reversed(PARTIALS)
                )
            )
            return engine.abstract

        abstract = asyncio.run(scenario())
        assert abstract.note_amount == "1234567"
        assert abstract.grantor_name == "Lone Star Holdings LLC"
        assert abstract.county == "Collin County"

    def test_returns_change_count(self) -> None:
        async def scenario() -> int:
            engine = MergeEngine()
            return await engine.merge({"county": "Collin", "trustee": "Pat"}, authoritative=False, ordinal=0)

        assert asyncio.run(scenario()) == 2

    def test_failed_merge_leaves_abstract_untouched(self) -> None:
        class Exploding(dict):
            def items(self):
                yield "county", "Collin"
                raise RuntimeError("bad partial")

        async def scenario() -> MergeEngine:
            engine = MergeEngine()
            await engine.merge({"trustee": "Pat"}, authoritative=False, ordinal=0)
            with pytest.raises(RuntimeError):
                await engine.merge(Exploding(), authoritative=True, ordinal=1)
            return engine

        engine = asyncio.run(scenario())
        assert engine.abstract.trustee == "Pat"
        assert engine.abstract.county is None
        assert "county" not in engine.provenance.ranks
