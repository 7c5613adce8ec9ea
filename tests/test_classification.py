"""
Tests for tag classification (sector, size, international).
"""

import json

import pytest

from company_mapper.classification import (
    DEFAULT_TABLE,
    TagClassifier,
    build_classifier,
    load_table,
)
from company_mapper.models import Company


def company(tags=(), tag="", name="Acme"):
    return Company(account_id="x", name=name, all_tags=list(tags), depth=0, tag=tag)


@pytest.fixture
def classifier():
    return TagClassifier(DEFAULT_TABLE)


# ============================================================
# SECTOR
# ============================================================

class TestSector:

    @pytest.mark.parametrize("tags,expected", [
        (["Energy"], "Energy"),
        (["Énergie renouvelable"], "Energy"),
        (["Water"], "Utilities"),
        (["Banque de détail"], "Financial Services"),
        (["Software"], "Technology"),
        (["Immobilier"], "Construction & Real Estate"),
    ])
    def test_keyword_maps_to_canonical_sector(self, classifier, tags, expected):
        assert classifier.sector(company(tags)) == expected

    def test_first_matching_tag_wins(self, classifier):
        assert classifier.sector(company(["Water", "Energy"])) == "Utilities"

    def test_size_tags_are_skipped(self, classifier):
        # "power" is an Energy keyword, but the whole tag is a headcount
        assert classifier.sector(company(["Power plants 50-100 employees", "Banking"])) == "Financial Services"

    def test_falls_back_to_primary_tag(self, classifier):
        assert classifier.sector(company(["Germany"], tag="Oil & Gas")) == "Energy"

    def test_no_sector(self, classifier):
        assert classifier.sector(company(["Germany"])) is None
        assert classifier.sector(company()) is None

    def test_keywords_match_whole_words(self, classifier):
        # "gas" must not match inside "Vegas"
        assert classifier.sector(company(["Las Vegas"])) is None


# ============================================================
# SIZE
# ============================================================

class TestSize:

    @pytest.mark.parametrize("text", [
        "50-100 employees",
        "10 001+ salariés",
        "1 à 10 employés",
        "€10M-€50M",
        "10-50 M€",
        "CA 100-500 M€",
    ])
    def test_size_tags_recognised(self, classifier, text):
        assert classifier.is_size_tag(text)
        assert classifier.size(company(["Energy", text])) == text

    def test_size_is_stripped_tag_text(self, classifier):
        assert classifier.size(company(["  50-100 employees "])) == "50-100 employees"

    @pytest.mark.parametrize("text", ["Energy", "Germany", "Top 20", "Canada"])
    def test_non_size_tags(self, classifier, text):
        assert not classifier.is_size_tag(text)

    def test_no_size(self, classifier):
        assert classifier.size(company(["Energy"])) is None


# ============================================================
# INTERNATIONAL
# ============================================================

class TestInternational:

    def test_keyword(self, classifier):
        assert classifier.is_international(company(["International"]))

    def test_foreign_country(self, classifier):
        assert classifier.is_international(company(["Energy", "Germany"]))

    def test_home_country_is_not_international(self, classifier):
        assert not classifier.is_international(company(["Energy", "France"]))

    def test_foreign_flag_in_name(self, classifier):
        assert classifier.is_international(company(name="Acme \U0001F1E9\U0001F1EA"))

    def test_home_flag_is_not_international(self, classifier):
        assert not classifier.is_international(company(name="Acme \U0001F1EB\U0001F1F7"))

    def test_home_country_override(self):
        german = build_classifier(home_country="Germany", home_country_code="DE")
        assert not german.is_international(company(["Germany"]))
        assert german.is_international(company(["France"]))
        assert not german.is_international(company(name="Acme \U0001F1E9\U0001F1EA"))


# ============================================================
# TABLE LOADING
# ============================================================

class TestTableLoading:

    def test_default_classifier_without_path(self):
        assert build_classifier().table.version == DEFAULT_TABLE.version

    def test_load_table_from_json(self, tmp_path):
        path = tmp_path / "table.json"
        path.write_text(json.dumps({
            "version": "test-1",
            "sector_keywords": {"Shipping": ["ferry"]},
            "size_patterns": [r"\bbig\b"],
            "international_keywords": ["abroad"],
            "countries": ["France", "Spain"],
        }), encoding="utf-8")

        assert load_table(path).version == "test-1"
        classifier = build_classifier(str(path))
        assert classifier.sector(company(["Ferry operator"])) == "Shipping"
        assert classifier.sector(company(["Energy"])) is None
        assert classifier.size(company(["big"])) == "big"
        assert classifier.is_international(company(["Spain"]))
