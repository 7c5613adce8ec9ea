"""
CSV export of a (filtered) company tree.

One row per company in pre-order, header first. Quoting follows RFC 4180
through the csv module; rows end with CRLF.
"""
import csv
import io
from typing import Iterable

from .classification import DEFAULT_CLASSIFIER, TagClassifier
from .errors import InvalidInputError
from .models import Company, CompanyComments, CompanyTags
from .tree import flatten_companies

CSV_COLUMNS = [
    "Name",
    "Account ID",
    "Sector",
    "Tag",
    "Size",
    "Depth",
    "Parent",
    "Website",
    "Profile URL",
    "Subsidiaries",
    "Custom Tags",
    "Comments",
]


def export_to_csv(
    companies: Company | Iterable[Company],
    tags: CompanyTags | None = None,
    comments: CompanyComments | None = None,
    classifier: TagClassifier | None = None,
) -> str:
    """
    Serialise companies to CSV text.

    ``companies`` is either a root node (flattened here) or an already
    flattened sequence. Custom tags and comments are joined in by accountId.
    """
    if companies is None:
        raise InvalidInputError("Nothing to export: expected a Company tree or a list of companies")
    rows = flatten_companies(companies) if isinstance(companies, Company) else list(companies)
    classifier = classifier or DEFAULT_CLASSIFIER
    tags = tags or {}
    comments = comments or {}

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for company in rows:
        parent = company.parent_company.name if company.parent_company else ""
        writer.writerow([
            company.name,
            company.account_id,
            classifier.sector(company) or "",
            company.tag,
            classifier.size(company) or "",
            company.depth,
            parent,
            company.website or "",
            company.profile_url or "",
            len(company.subsidiaries),
            "; ".join(t.label for t in tags.get(company.account_id, [])),
            " | ".join(c.text for c in comments.get(company.account_id, [])),
        ])
    return buf.getvalue()
