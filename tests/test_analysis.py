"""Tests for content classification and structural profiling."""

from datetime import datetime, timedelta, timezone

import pytest

from civicdata.crawler.analysis import (
    ContentAnalyzer,
    classify_content_type,
    complexity_of,
    confidence_of,
    count_extractable,
    count_syllables,
    data_richness,
    freshness_from_date,
    importance_score,
    information_density,
    page_metrics,
    public_value,
    readability,
    structural_complexity,
    structure_kind,
    top_keywords,
)
from civicdata.crawler.types import (
    Complexity,
    ContentType,
    ExtractableData,
    ExtractedRecord,
    StructureKind,
)

from conftest import BASE, PLANNING_HTML, parsed_page


NOW = datetime(2024, 3, 10, tzinfo=timezone.utc)


def page(url, body, title="Page", head=""):
    return parsed_page(url, f"<html><head><title>{title}</title>{head}</head><body>{body}</body></html>")


class TestClassification:
    """First matching rule wins."""

    @pytest.mark.parametrize(
        ("url", "body", "expected"),
        [
            (f"{BASE}/council-meetings/5", "<p>Dates</p>", ContentType.MEETING),
            (f"{BASE}/x", "<p>Agenda item 4: roads</p>", ContentType.MEETING),
            (f"{BASE}/apply", "<p>Submit a planning application online.</p>", ContentType.PLANNING),
            (f"{BASE}/x", "<p>Total cost £4,000</p>", ContentType.FINANCE),
            (f"{BASE}/foi", "<p>Requests</p>", ContentType.TRANSPARENCY),
            (f"{BASE}/x", "<p>Make a freedom of information request</p>", ContentType.TRANSPARENCY),
            (f"{BASE}/department/roads", "<p>Roads</p>", ContentType.SERVICE),
            (f"{BASE}/have-your-say", "<p>Our consultation is open</p>", ContentType.CONSULTATION),
            (f"{BASE}/policy/parking", "<p>Parking rules</p>", ContentType.DOCUMENT),
            (f"{BASE}/about", "<p>About us</p>", ContentType.OTHER),
        ],
    )
    def test_rules(self, url, body, expected):
        """Each rule recognizes its content type."""
        assert classify_content_type(page(url, body)) == expected

    def test_meeting_beats_planning(self):
        """A planning committee agenda is a meeting page."""
        body = "<p>Planning committee will consider the planning application.</p>"
        assert classify_content_type(page(f"{BASE}/planning", body)) == ContentType.MEETING

    def test_many_forms_mean_consultation(self):
        """More than two forms marks a consultation."""
        body = "<form></form>" * 3
        assert classify_content_type(page(f"{BASE}/x", body)) == ContentType.CONSULTATION


class TestImportanceAndFreshness:
    """Importance adjustments and freshness bands."""

    def test_short_plain_page_loses_two(self):
        """Under 500 characters costs 2 points."""
        assert importance_score(ContentType.OTHER, page(f"{BASE}/x", "<p>Short</p>")) == 1

    def test_structural_signals_add_up_and_clamp(self):
        """Tables, data classes, contact links, sterling and dates raise importance, capped at 10."""
        body = (
            "<table class='data-table'><tr><td>1</td></tr></table>"
            "<a href='mailto:a@b.gov.uk'>mail</a>"
            f"<p>{'Spending of £5 on 01/02/2024. ' * 30}</p>"
        )
        assert importance_score(ContentType.FINANCE, page(f"{BASE}/x", body)) == 10

    @pytest.mark.parametrize(
        ("age_days", "expected"),
        [(1, 10), (20, 8), (60, 6), (200, 4), (900, 2)],
    )
    def test_freshness_bands(self, age_days, expected):
        """Newer content scores higher."""
        assert freshness_from_date(NOW - timedelta(days=age_days), NOW) == expected

    def test_unknown_date_is_neutral(self):
        """Without a date freshness is 5."""
        assert freshness_from_date(None, NOW) == 5


class TestStructure:
    """Structure and extractable counts."""

    def test_structure_kinds(self):
        """Weighted element counts map to three structure kinds."""
        assert structure_kind(page(f"{BASE}/x", "<p>text</p>")) == StructureKind.UNSTRUCTURED
        assert structure_kind(page(f"{BASE}/x", "<ul></ul><h1>a</h1><h2>b</h2>")) == StructureKind.SEMI_STRUCTURED
        assert structure_kind(page(f"{BASE}/x", "<table></table>" * 4)) == StructureKind.STRUCTURED

    def test_count_extractable(self):
        """Contacts, dates, amounts and links are counted."""
        body = (
            "<a href='tel:01234567890'>call</a> <a href='/x'>x</a>"
            "<p>Email info@council.gov.uk by 1 March 2024. Budget £2,000,000.</p>"
        )
        extractable = count_extractable(page(f"{BASE}/x", body))
        assert extractable.contacts == 2
        assert extractable.dates == 1
        assert extractable.amounts == 1
        assert extractable.links == 2

    def test_complexity_and_confidence(self):
        """Complexity needs several signals; confidence is capped at 1."""
        rich = ExtractableData(tables=3, forms=2, links=60)
        assert complexity_of(100, ExtractableData()) == Complexity.SIMPLE
        assert complexity_of(2000, ExtractableData()) == Complexity.MODERATE
        assert complexity_of(2000, rich) == Complexity.COMPLEX
        assert confidence_of(StructureKind.UNSTRUCTURED, ContentType.OTHER, ExtractableData()) == 0.7
        assert confidence_of(StructureKind.STRUCTURED, ContentType.MEETING, ExtractableData(tables=20)) == 1.0

    def test_keywords_skip_stop_words(self):
        """Keywords are frequent content words longer than three letters."""
        keywords = top_keywords("the planning planning planning committee with with with this budget budget")
        assert keywords[:3] == ("planning", "budget", "committee")
        assert "with" not in keywords


class TestContentAnalyzer:
    """End-to-end analysis of one page."""

    def test_planning_page(self):
        """A planning list page is classified with its structural profile."""
        analyzer = ContentAnalyzer(now=lambda: NOW)
        analysis = analyzer.analyze(parsed_page(f"{BASE}/planning/weekly-list", PLANNING_HTML))

        assert analysis.content_type == ContentType.PLANNING
        assert analysis.importance == 10
        assert analysis.freshness == 5
        assert analysis.structure == StructureKind.SEMI_STRUCTURED
        assert analysis.extractable.tables == 1
        assert "planning" in analysis.keywords
        assert 0.0 <= analysis.confidence <= 1.0

    def test_declared_date_sets_freshness(self):
        """Last-Modified and meta dates feed freshness."""
        html = (
            "<html><head><meta name='last-modified' content='2024-03-08T09:00:00Z'></head>"
            "<body><p>Bin collection changes</p></body></html>"
        )
        analysis = ContentAnalyzer(now=lambda: NOW).analyze(parsed_page(f"{BASE}/bins", html))
        assert analysis.freshness == 10
        assert analysis.last_modified.startswith("2024-03-08")


class TestPageMetrics:
    """Readability, density and value indicators stored with each record."""

    def test_syllables(self):
        """Short words count once; a trailing silent e is dropped."""
        assert count_syllables("the") == 1
        assert count_syllables("planning") == 2
        assert count_syllables("make") == 1
        assert count_syllables("committee") == 2

    def test_readability_is_clamped(self):
        """Very easy text caps at 1, dense text floors at 0, empty text is 0."""
        assert readability("The cat sat.") == 1.0
        assert readability("Notwithstanding administrative responsibilities organisational.") == 0.0
        assert readability("") == 0.0

    def test_information_density(self):
        """Data points per hundred words, capped at 1."""
        extracted = ExtractedRecord(
            url=BASE,
            tables=[{"headers": ["Reference"]}],
            contacts={"emails": ["a@council.example.gov.uk", "b@council.example.gov.uk"], "phones": [], "addresses": []},
        )
        assert information_density(extracted, 50) == 1.0
        assert information_density(extracted, 1000) == pytest.approx(0.3)
        assert information_density(ExtractedRecord(url=BASE), 1000) == 0.0

    def test_public_value_and_richness(self):
        """Civic terms, contacts and tables add value; empty extractions add nothing."""
        analysis = ContentAnalyzer(now=lambda: NOW).analyze(page(f"{BASE}/meetings", "<p>Agenda</p>"))
        extracted = ExtractedRecord(
            url=BASE,
            tables=[{"headers": ["Item"]}],
            contacts={"emails": ["clerk@council.example.gov.uk"], "phones": [], "addresses": []},
            forms=[],
        )
        assert public_value(extracted, analysis, "Agenda and minutes of the meeting") == pytest.approx(0.59)
        assert data_richness(extracted, analysis) == pytest.approx(0.45)
        assert data_richness(ExtractedRecord(url=BASE), analysis) == 0.0

    def test_planning_page_metrics(self):
        """The weekly list scores on structure and richness; classifier scores are rescaled."""
        planning = parsed_page(f"{BASE}/planning/weekly-list", PLANNING_HTML)
        analysis = ContentAnalyzer(now=lambda: NOW).analyze(planning)
        extracted = ExtractedRecord(
            url=planning.url,
            tables=[{"caption": "Applications"}],
            contacts={"emails": ["planning@council.example.gov.uk"], "phones": ["01234567890"], "addresses": []},
            documents=[{"file_type": "pdf"}],
        )
        metrics = page_metrics(planning, extracted, analysis)

        assert structural_complexity(planning) == pytest.approx(0.14)
        assert metrics.structural_complexity == pytest.approx(0.14)
        assert metrics.data_richness == pytest.approx(0.8)
        assert metrics.importance == analysis.importance / 10
        assert metrics.freshness == analysis.freshness / 10
        assert metrics.confidence == analysis.confidence
        assert 0.0 <= metrics.readability <= 1.0
        assert set(metrics.to_json()) == {
            "readability",
            "information_density",
            "structural_complexity",
            "data_richness",
            "public_value",
            "freshness",
            "importance",
            "confidence",
        }
