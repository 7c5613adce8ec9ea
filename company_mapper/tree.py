"""
Company tree traversals: stats, filtering, flattening and path lookup.

All functions are pure. They read a Company tree and return new values;
the input tree is never modified. Traversal is depth-first pre-order with
subsidiaries visited in their stored order. Uploads deeper than
MAX_TREE_DEPTH are rejected at load time, so plain recursion is safe here.
"""
from collections import Counter
from typing import Iterator

from .classification import DEFAULT_CLASSIFIER, TagClassifier
from .errors import InvalidInputError
from .models import Company, CompanyStats, FilterOptions


def _require_root(root: Company | None) -> Company:
    if root is None:
        raise InvalidInputError("A company tree is required, got None")
    if not isinstance(root, Company):
        raise InvalidInputError(f"Expected a Company tree, got {type(root).__name__}")
    return root


def iter_companies(root: Company) -> Iterator[Company]:
    """Lazily yield every node of the tree, pre-order."""
    _require_root(root)

    def walk(company: Company) -> Iterator[Company]:
        yield company
        for sub in company.subsidiaries:
            yield from walk(sub)

    return walk(root)


def flatten_companies(root: Company) -> list[Company]:
    return list(iter_companies(root))


def calculate_stats(root: Company, classifier: TagClassifier | None = None) -> CompanyStats:
    classifier = classifier or DEFAULT_CLASSIFIER
    by_depth: Counter = Counter()
    by_sector: Counter = Counter()
    by_size: Counter = Counter()
    with_website = 0
    international = 0

    for company in iter_companies(root):
        by_depth[company.depth] += 1
        if sector := classifier.sector(company):
            by_sector[sector] += 1
        if size := classifier.size(company):
            by_size[size] += 1
        if company.website:
            with_website += 1
        if classifier.is_international(company):
            international += 1

    return CompanyStats(
        total_companies=sum(by_depth.values()),
        max_depth=max(by_depth),
        companies_by_depth=dict(by_depth),
        companies_by_sector=dict(by_sector),
        companies_by_size=dict(by_size),
        companies_with_website=with_website,
        international_companies=international,
    )


def get_unique_sectors(root: Company, classifier: TagClassifier | None = None) -> list[str]:
    classifier = classifier or DEFAULT_CLASSIFIER
    return sorted({s for c in iter_companies(root) if (s := classifier.sector(c))})


def get_unique_sizes(root: Company, classifier: TagClassifier | None = None) -> list[str]:
    classifier = classifier or DEFAULT_CLASSIFIER
    return sorted({s for c in iter_companies(root) if (s := classifier.size(c))})


def company_matches(company: Company, options: FilterOptions,
                    classifier: TagClassifier | None = None) -> bool:
    """True when the node itself satisfies every active filter."""
    classifier = classifier or DEFAULT_CLASSIFIER

    term = (options.search_term or "").strip().casefold()
    if term:
        haystack = [company.name, company.tag, classifier.sector(company) or "", *company.all_tags]
        if not any(term in text.casefold() for text in haystack):
            return False

    if options.sector is not None and classifier.sector(company) != options.sector:
        return False
    if options.size is not None and classifier.size(company) != options.size:
        return False
    if options.depth is not None and company.depth != options.depth:
        return False
    if options.has_website is not None and bool(company.website) != options.has_website:
        return False
    return True


def filter_companies(root: Company, options: FilterOptions,
                     classifier: TagClassifier | None = None) -> Company | None:
    """
    Prune the tree to the nodes matching ``options``.

    A node survives when it matches or when one of its descendants does,
    so every match stays reachable from the root. Surviving nodes keep only
    their surviving subsidiaries. Returns None when nothing matches.
    """
    _require_root(root)
    classifier = classifier or DEFAULT_CLASSIFIER

    def prune(company: Company) -> Company | None:
        kept = [p for sub in company.subsidiaries if (p := prune(sub)) is not None]
        if kept or company_matches(company, options, classifier):
            return company.model_copy(update={"subsidiaries": kept})
        return None

    return prune(root)


def find_company_by_id(root: Company, account_id: str) -> Company | None:
    for company in iter_companies(root):
        if company.account_id == account_id:
            return company
    return None


def get_company_path(root: Company, account_id: str) -> list[Company]:
    """Ancestor chain from the root down to ``account_id`` inclusive, [] if absent."""
    _require_root(root)

    def search(company: Company, trail: list[Company]) -> list[Company] | None:
        trail = trail + [company]
        if company.account_id == account_id:
            return trail
        for sub in company.subsidiaries:
            if (found := search(sub, trail)) is not None:
                return found
        return None

    return search(root, []) or []

