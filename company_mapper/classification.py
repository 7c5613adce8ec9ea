"""
Tag classification for scraped companies.

The scraper gives every company a flat list of free-text tags (``allTags``)
where sector names, headcount/revenue ranges and countries are mixed
together. The dashboard and the filters need them split apart, so the
matching rules live in a versioned ``ClassificationTable`` that can be
swapped (``CLASSIFICATION_TABLE_PATH``) without touching the tree code.

Rules:
  - sector: first tag (then the primary ``tag`` label) containing a sector
    keyword, reported under the canonical sector name
  - size: first tag matching one of the size patterns, reported as the tag
    text itself (e.g. "50-100 employees", "CA 10-50 M€")
  - international: a tag containing an international keyword, a tag naming
    a country other than the home country, or a flag emoji (in the name or
    the tags) for another country
"""
import json
import logging
import re
from functools import cached_property
from pathlib import Path

from pydantic import BaseModel

from .models import Company

logger = logging.getLogger(__name__)

# Regional indicator symbols, two per flag emoji
FLAG_RE = re.compile("[\U0001F1E6-\U0001F1FF]{2}")


class ClassificationTable(BaseModel):
    version: str
    sector_keywords: dict[str, list[str]]
    size_patterns: list[str]
    international_keywords: list[str]
    countries: list[str]
    home_country: str = "France"
    home_country_code: str = "FR"


DEFAULT_TABLE = ClassificationTable(
    version="2024-11-01",
    sector_keywords={
        "Energy": [
            "energy", "énergie", "energie", "power", "electricity", "électricité",
            "renewable", "renouvelable", "oil", "gas", "gaz", "nuclear", "nucléaire",
            "solar", "solaire", "wind", "éolien", "hydrogen", "hydrogène",
        ],
        "Utilities": ["utilities", "water", "eau", "waste", "déchets", "environmental services"],
        "Financial Services": [
            "bank", "banque", "banking", "finance", "financial", "insurance", "assurance",
            "asset management", "private equity", "investment",
        ],
        "Technology": [
            "software", "technology", "technologies", "it services", "digital", "numérique",
            "telecom", "télécom", "semiconductor", "informatique", "saas",
        ],
        "Industrial": [
            "manufacturing", "industrial", "industrie", "industry", "engineering", "ingénierie",
            "machinery", "aerospace", "aéronautique", "defense", "défense", "chemicals", "chimie",
        ],
        "Construction & Real Estate": [
            "construction", "real estate", "immobilier", "btp", "building", "infrastructure",
        ],
        "Healthcare": ["health", "healthcare", "santé", "pharma", "pharmaceutical", "hospital", "medical", "biotech"],
        "Consumer & Retail": [
            "retail", "consumer", "food", "agroalimentaire", "beverage", "luxury", "luxe",
            "commerce", "e-commerce", "hospitality", "hôtellerie",
        ],
        "Transport & Logistics": [
            "transport", "transportation", "logistics", "logistique", "shipping", "airline",
            "rail", "ferroviaire", "automotive", "automobile",
        ],
        "Professional Services": ["consulting", "conseil", "legal", "juridique", "audit", "accounting"],
    },
    size_patterns=[
        # headcount ranges: "50-100 employees", "10 001+ salariés", "1 à 10 employés"
        r"\b\d[\d\s.,]*(?:\s*(?:-|–|to|à)\s*\d[\d\s.,]*)?\+?\s*(?:employees|employés|employes|salariés|salaries|staff)\b",
        # revenue ranges with a leading currency: "€10M-€50M", "$1B+"
        r"(?:€|\$|£)\s*\d[\d\s.,]*\s*(?:k|m|b|bn|mn|md|mds)?\b",
        # revenue ranges with a trailing currency: "10-50 M€", "1 Md€", "500 million EUR"
        r"\b\d[\d\s.,]*(?:\s*(?:-|–|to|à)\s*\d[\d\s.,]*)?\s*(?:k|m|b|bn|mn|md|mds|million|millions|billion|milliard|milliards)\s*(?:€|\$|£|eur|usd|gbp)",
        # explicit revenue labels
        r"^\s*(?:ca|revenue|revenues|turnover|chiffre d'affaires)\b",
    ],
    international_keywords=[
        "international", "multinational", "global", "worldwide", "overseas", "export",
        "à l'international", "monde",
    ],
    countries=[
        "France", "Germany", "Allemagne", "Spain", "Espagne", "Italy", "Italie",
        "United Kingdom", "Royaume-Uni", "UK", "United States", "USA", "États-Unis",
        "Belgium", "Belgique", "Netherlands", "Pays-Bas", "Switzerland", "Suisse",
        "Luxembourg", "Portugal", "Ireland", "Irlande", "Poland", "Pologne",
        "Sweden", "Suède", "Norway", "Norvège", "Denmark", "Danemark", "Finland",
        "Austria", "Autriche", "Canada", "Mexico", "Mexique", "Brazil", "Brésil",
        "Chile", "Chili", "Argentina", "Argentine", "Morocco", "Maroc", "Algeria",
        "Algérie", "Tunisia", "Tunisie", "South Africa", "Afrique du Sud", "Egypt",
        "China", "Chine", "Japan", "Japon", "India", "Inde", "Singapore", "Singapour",
        "Australia", "Australie", "United Arab Emirates", "Émirats arabes unis",
        "Saudi Arabia", "Arabie saoudite", "Turkey", "Turquie",
    ],
)


def _word_pattern(words: list[str]) -> re.Pattern:
    alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


def _flag_code(flag: str) -> str:
    return "".join(chr(ord(c) - 0x1F1E6 + ord("A")) for c in flag)


class TagClassifier:
    """Applies a ClassificationTable to Company nodes."""

    def __init__(self, table: ClassificationTable = DEFAULT_TABLE):
        self.table = table

    @cached_property
    def _sector_patterns(self) -> list[tuple[str, re.Pattern]]:
        return [(sector, _word_pattern(words)) for sector, words in self.table.sector_keywords.items()]

    @cached_property
    def _size_patterns(self) -> list[re.Pattern]:
        return [re.compile(p, re.IGNORECASE) for p in self.table.size_patterns]

    @cached_property
    def _international_pattern(self) -> re.Pattern:
        return _word_pattern(self.table.international_keywords)

    @cached_property
    def _foreign_country_pattern(self) -> re.Pattern | None:
        home = self.table.home_country.casefold()
        foreign = [c for c in self.table.countries if c.casefold() != home]
        return _word_pattern(foreign) if foreign else None

    def _labels(self, company: Company) -> list[str]:
        labels = list(company.all_tags)
        if company.tag:
            labels.append(company.tag)
        return labels

    def is_size_tag(self, text: str) -> bool:
        return any(p.search(text) for p in self._size_patterns)

    def sector(self, company: Company) -> str | None:
        for text in self._labels(company):
            if self.is_size_tag(text):
                continue
            for sector, pattern in self._sector_patterns:
                if pattern.search(text):
                    return sector
        return None

    def size(self, company: Company) -> str | None:
        for text in company.all_tags:
            if self.is_size_tag(text):
                return text.strip()
        return None

    def is_international(self, company: Company) -> bool:
        labels = self._labels(company)
        for text in labels:
            if self._international_pattern.search(text):
                return True
            if self._foreign_country_pattern and self._foreign_country_pattern.search(text):
                return True
        home_code = self.table.home_country_code.upper()
        for text in [company.name, *labels]:
            if any(_flag_code(flag) != home_code for flag in FLAG_RE.findall(text)):
                return True
        return False


DEFAULT_CLASSIFIER = TagClassifier(DEFAULT_TABLE)


def load_table(path: str | Path) -> ClassificationTable:
    """Load a ClassificationTable override from a JSON file."""
    with open(path, encoding="utf-8") as f:
        table = ClassificationTable.model_validate(json.load(f))
    logger.info("Loaded classification table %s from %s", table.version, path)
    return table


def build_classifier(table_path: str = "", home_country: str | None = None,
                     home_country_code: str | None = None) -> TagClassifier:
    table = load_table(table_path) if table_path else DEFAULT_TABLE
    overrides = {}
    if home_country:
        overrides["home_country"] = home_country
    if home_country_code:
        overrides["home_country_code"] = home_country_code
    if overrides:
        table = table.model_copy(update=overrides)
    return TagClassifier(table)
