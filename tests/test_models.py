from __future__ import annotations

from datetime import date

import pytest

from vodafone_invoice_mailer.categories import KNOWN_CATEGORIES, is_known_category, resolve_categories
from vodafone_invoice_mailer.models import Document, Period, build_filename
from vodafone_invoice_mailer.util.months import GERMAN_MONTHS, MONTH_NAMES, german_month, month_number


MOBILFUNK = KNOWN_CATEGORIES["mobilfunk"]
KABEL = KNOWN_CATEGORIES["kabel"]


def test_month_table_is_complete_and_consistent() -> None:
    assert len(GERMAN_MONTHS) == 12
    assert sorted(GERMAN_MONTHS.values()) == [f"{m:02d}" for m in range(1, 13)]
    for month in range(1, 13):
        name = german_month(month)
        assert MONTH_NAMES[month] == name
        assert month_number(name) == month


def test_month_lookup_is_closed_and_case_sensitive() -> None:
    assert month_number("Maerz") is None
    assert month_number("märz") is None
    assert month_number("May") is None
    assert german_month(0) == ""
    assert german_month(13) == ""


def test_period_equality_ignores_month_name_spelling() -> None:
    assert Period(month=2, year=2026) == Period.of(2, 2026)
    assert hash(Period(month=2, year=2026)) == hash(Period.of(2, 2026))
    assert Period.of(2, 2026) != Period.of(2, 2025)


def test_period_validation() -> None:
    with pytest.raises(ValueError):
        Period(month=13, year=2026)
    with pytest.raises(ValueError):
        Period(month=1, year=26)
    with pytest.raises(ValueError):
        Period(month=1, year=2026, month_name="Februar")


def test_current_period_uses_german_name() -> None:
    p = Period.current(date(2026, 3, 31))
    assert p == Period.of(3, 2026)
    assert p.label == "März 2026"


def test_build_filename_is_deterministic() -> None:
    p = Period.of(2, 2026)
    assert build_filename(MOBILFUNK, p) == "02_2026_Rechnung_Vodafone_Mobilfunk.pdf"
    assert build_filename(KABEL, Period.of(11, 2025)) == "11_2025_Rechnung_Vodafone_Kabel.pdf"
    assert build_filename(MOBILFUNK, p) == build_filename(MOBILFUNK, Period.of(2, 2026))


def test_document_create() -> None:
    doc = Document.create(category=KABEL, period=Period.of(1, 2026), payload=b"%PDF-1.4")
    assert doc.filename == "01_2026_Rechnung_Vodafone_Kabel.pdf"
    assert doc.category == KABEL
    assert doc.period == Period.of(1, 2026)
    assert doc.payload == b"%PDF-1.4"
    # Binary payloads stay out of reprs and logs.
    assert "%PDF" not in repr(doc)


def test_document_payload_must_not_be_empty() -> None:
    with pytest.raises(ValueError):
        Document.create(category=KABEL, period=Period.of(1, 2026), payload=b"")


def test_known_categories_registry() -> None:
    assert list(KNOWN_CATEGORIES) == ["mobilfunk", "kabel"]
    assert MOBILFUNK.nav_label == "Mobilfunk-Vertrag"
    assert KABEL.nav_label == "Kabel-Vertrag"
    assert is_known_category(" Kabel ")
    assert not is_known_category("dsl")


def test_resolve_categories_keeps_registry_order_and_dedupes() -> None:
    assert resolve_categories(["kabel", "MOBILFUNK", "kabel"]) == [MOBILFUNK, KABEL]
    assert resolve_categories([]) == []


def test_resolve_categories_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="dsl"):
        resolve_categories(["mobilfunk", "dsl"])
