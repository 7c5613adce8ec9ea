from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Reads and writes the camelCase keys produced by the scraper and the front end."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Company tree
# ---------------------------------------------------------------------------

class ParentCompany(CamelModel):
    name: str
    nomination_link: str | None = None


class Company(CamelModel):
    account_id: str
    name: str
    all_tags: list[str] = []
    depth: int = Field(ge=0)
    tag: str = ""                    # primary label shown under the name
    parent_company: ParentCompany | None = None   # descriptive only
    profile_url: str | None = None
    website: str | None = None
    subsidiaries: list["Company"] = []


class ScrapingMetadata(CamelModel):
    duration: float | None = None
    start_time: float | None = None
    end_time: float | None = None
    errors: list = []
    max_depth: int | None = None
    status: str | None = None
    total_companies_scraped: int | None = None
    urls_visited: list[str] = []


class CompanyData(CamelModel):
    company: Company
    metadata: ScrapingMetadata = Field(default_factory=ScrapingMetadata)


class CompanyStats(CamelModel):
    total_companies: int = 0
    max_depth: int = 0
    companies_by_depth: dict[int, int] = {}
    companies_by_sector: dict[str, int] = {}
    companies_by_size: dict[str, int] = {}
    companies_with_website: int = 0
    international_companies: int = 0

    def depth_distribution(self) -> list[tuple[int, int]]:
        """(depth, count) pairs, shallowest first."""
        return sorted(self.companies_by_depth.items())


class FilterOptions(CamelModel):
    search_term: str | None = None
    sector: str | None = None
    size: str | None = None
    depth: int | None = None
    has_website: bool | None = None

    def is_empty(self) -> bool:
        return (
            not (self.search_term or "").strip()
            and self.sector is None
            and self.size is None
            and self.depth is None
            and self.has_website is None
        )


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------

class TagType(str, Enum):
    TOP20 = "TOP20"
    TOP50 = "TOP50"
    CLIENT_DILITRUST = "CLIENT_DILITRUST"


TAG_LABELS = {
    TagType.TOP20: "TOP 20",
    TagType.TOP50: "TOP 50",
    TagType.CLIENT_DILITRUST: "Client DiliTrust",
}


class DiliTrustModule(str, Enum):
    BP = "BP"
    CLM = "CLM"
    LEM = "LEM"
    ELM = "ELM"
    DATAROOM = "DATAROOM"


class CustomTag(CamelModel):
    type: TagType
    modules: list[DiliTrustModule] | None = None   # CLIENT_DILITRUST only
    added_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _modules_only_for_clients(self):
        if self.modules and self.type != TagType.CLIENT_DILITRUST:
            raise ValueError(f"modules are only allowed on {TagType.CLIENT_DILITRUST.value} tags")
        return self

    @property
    def label(self) -> str:
        label = TAG_LABELS[self.type]
        if self.type == TagType.CLIENT_DILITRUST and self.modules:
            label += f" ({', '.join(m.value for m in self.modules)})"
        return label


class Comment(CamelModel):
    id: str
    company_account_id: str
    text: str
    author: str | None = "Admin"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# account_id -> annotations
CompanyTags = dict[str, list[CustomTag]]
CompanyComments = dict[str, list[Comment]]


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

class GroupMetadata(CamelModel):
    id: str
    name: str
    description: str = ""
    tags: list[TagType] = []
    dilitrust_modules: list[DiliTrustModule] = []
    comments: str = ""               # free-text admin note on the whole group
    is_public: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Group(CamelModel):
    metadata: GroupMetadata
    data: CompanyData


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

# Blank names are rejected after trimming
GroupName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class AdminSession(CamelModel):
    """The authenticated admin behind the current request."""
    email: str
    expires_at: datetime


class GroupCreateRequest(CamelModel):
    name: GroupName
    description: str = ""
    tags: list[TagType] = []
    dilitrust_modules: list[DiliTrustModule] = []
    comments: str = ""
    is_public: bool = True
    json_data: dict


class GroupUpdateRequest(CamelModel):
    name: GroupName | None = None
    description: str | None = None
    tags: list[TagType] | None = None
    dilitrust_modules: list[DiliTrustModule] | None = None
    comments: str | None = None
    is_public: bool | None = None
    json_data: dict | None = None


class GroupDetailResponse(CamelModel):
    group: Group
    comments: CompanyComments = {}
    tags: CompanyTags = {}


class TagAddRequest(CamelModel):
    company_id: str
    tag: CustomTag


class CommentCreateRequest(CamelModel):
    company_id: str
    text: str = Field(min_length=1)
    author: str | None = None


class CommentUpdateRequest(CamelModel):
    text: str = Field(min_length=1)


class FacetsResponse(CamelModel):
    sectors: list[str]
    sizes: list[str]
    max_depth: int


class FilteredTreeResponse(CamelModel):
    root: Company | None             # None when nothing matched
    total_matches: int


class CompanyListItem(CamelModel):
    account_id: str
    name: str
    tag: str = ""
    depth: int
    sector: str | None = None
    size: str | None = None
    website: str | None = None
    profile_url: str | None = None
    subsidiary_count: int = 0
    custom_tags: list[CustomTag] = []
    comment_count: int = 0


class Breadcrumb(CamelModel):
    account_id: str
    name: str
    depth: int


class CompanyDetailResponse(CamelModel):
    company: Company
    path: list[Breadcrumb]
    sector: str | None = None
    size: str | None = None
    international: bool = False
    custom_tags: list[CustomTag] = []
    comments: list[Comment] = []
