"""
Company Mapper
Public viewer API over uploaded company ownership trees: dashboard stats,
filtered trees and lists, company detail with breadcrumbs, and CSV export.
Admin routes (upload, tags, comments) live in admin.py under /admin.
"""
import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import admin
from .classification import TagClassifier, build_classifier
from .config import Settings, configure_logging, get_settings
from .dependencies import get_classifier, get_store, get_visible_group, require_admin
from .errors import GroupNotFoundError, InvalidInputError
from .export import export_to_csv
from .models import (
    AdminSession,
    Breadcrumb,
    Company,
    CompanyComments,
    CompanyDetailResponse,
    CompanyListItem,
    CompanyStats,
    CompanyTags,
    FacetsResponse,
    FilteredTreeResponse,
    FilterOptions,
    Group,
    GroupMetadata,
)
from .storage import GroupStore, build_store
from .tree import (
    calculate_stats,
    company_matches,
    filter_companies,
    find_company_by_id,
    flatten_companies,
    get_company_path,
    get_unique_sectors,
    get_unique_sizes,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def filter_options(
    search: str = "",
    sector: str | None = None,
    size: str | None = None,
    depth: int | None = Query(None, ge=0),
    has_website: bool | None = None,
) -> FilterOptions:
    return FilterOptions(
        search_term=search,
        sector=sector or None,
        size=size or None,
        depth=depth,
        has_website=has_website,
    )


def _filtered_root(group: Group, options: FilterOptions, classifier: TagClassifier) -> Company | None:
    root = group.data.company
    if options.is_empty():
        return root
    return filter_companies(root, options, classifier)


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/groups", response_model=list[GroupMetadata])
def list_public_groups(store: GroupStore = Depends(get_store)):
    return store.list_groups(public_only=True)


@router.get("/groups/{group_id}", response_model=Group)
def get_group(group: Group = Depends(get_visible_group)):
    return group


@router.get("/groups/{group_id}/stats", response_model=CompanyStats)
def group_stats(
    group: Group = Depends(get_visible_group),
    classifier: TagClassifier = Depends(get_classifier),
):
    """Dashboard numbers for the whole tree, depths listed shallowest first."""
    stats = calculate_stats(group.data.company, classifier)
    return stats.model_copy(update={"companies_by_depth": dict(stats.depth_distribution())})


@router.get("/groups/{group_id}/facets", response_model=FacetsResponse)
def group_facets(
    group: Group = Depends(get_visible_group),
    classifier: TagClassifier = Depends(get_classifier),
):
    """Values offered by the sector/size/depth filter drop-downs."""
    root = group.data.company
    return FacetsResponse(
        sectors=get_unique_sectors(root, classifier),
        sizes=get_unique_sizes(root, classifier),
        max_depth=max(c.depth for c in flatten_companies(root)),
    )


@router.get("/groups/{group_id}/tree", response_model=FilteredTreeResponse)
def group_tree(
    group: Group = Depends(get_visible_group),
    options: FilterOptions = Depends(filter_options),
    classifier: TagClassifier = Depends(get_classifier),
):
    root = _filtered_root(group, options, classifier)
    if root is None:
        return FilteredTreeResponse(root=None, total_matches=0)
    matches = sum(1 for c in flatten_companies(root) if company_matches(c, options, classifier))
    return FilteredTreeResponse(root=root, total_matches=matches)


@router.get("/groups/{group_id}/companies", response_model=list[CompanyListItem])
def group_companies(
    group_id: str,
    group: Group = Depends(get_visible_group),
    options: FilterOptions = Depends(filter_options),
    classifier: TagClassifier = Depends(get_classifier),
    store: GroupStore = Depends(get_store),
):
    """Flat list view: the filtered tree in pre-order, annotations joined in."""
    root = _filtered_root(group, options, classifier)
    if root is None:
        return []
    tags = store.get_tags(group_id)
    comments = store.get_comments(group_id)
    return [
        CompanyListItem(
            account_id=c.account_id,
            name=c.name,
            tag=c.tag,
            depth=c.depth,
            sector=classifier.sector(c),
            size=classifier.size(c),
            website=c.website,
            profile_url=c.profile_url,
            subsidiary_count=len(c.subsidiaries),
            custom_tags=tags.get(c.account_id, []),
            comment_count=len(comments.get(c.account_id, [])),
        )
        for c in flatten_companies(root)
    ]


@router.get("/groups/{group_id}/companies/{account_id}", response_model=CompanyDetailResponse)
def company_detail(
    group_id: str,
    account_id: str,
    group: Group = Depends(get_visible_group),
    classifier: TagClassifier = Depends(get_classifier),
    store: GroupStore = Depends(get_store),
):
    root = group.data.company
    company = find_company_by_id(root, account_id)
    if company is None:
        raise HTTPException(status_code=404, detail=f"Company not found: {account_id}")
    path = get_company_path(root, account_id)
    return CompanyDetailResponse(
        company=company,
        path=[Breadcrumb(account_id=c.account_id, name=c.name, depth=c.depth) for c in path],
        sector=classifier.sector(company),
        size=classifier.size(company),
        international=classifier.is_international(company),
        custom_tags=store.get_tags(group_id).get(account_id, []),
        comments=store.get_comments(group_id).get(account_id, []),
    )


@router.get("/groups/{group_id}/tags", response_model=CompanyTags, dependencies=[Depends(get_visible_group)])
def group_tags(group_id: str, store: GroupStore = Depends(get_store)):
    """Read-only tag overlay, keyed by accountId."""
    return store.get_tags(group_id)


@router.get("/groups/{group_id}/company-comments", response_model=CompanyComments,
            dependencies=[Depends(get_visible_group)])
def group_comments(group_id: str, store: GroupStore = Depends(get_store)):
    return store.get_comments(group_id)


@router.get("/groups/{group_id}/export.csv")
def export_group_csv(
    group_id: str,
    group: Group = Depends(get_visible_group),
    options: FilterOptions = Depends(filter_options),
    classifier: TagClassifier = Depends(get_classifier),
    store: GroupStore = Depends(get_store),
    session: AdminSession = Depends(require_admin),
):
    """CSV of the filtered tree (admin only)."""
    root = _filtered_root(group, options, classifier)
    companies = flatten_companies(root) if root is not None else []
    csv_text = export_to_csv(
        companies,
        tags=store.get_tags(group_id),
        comments=store.get_comments(group_id),
        classifier=classifier,
    )
    logger.info("CSV export of %s by %s (%d rows)", group_id, session.email, len(companies))
    return Response(
        content=csv_text.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{group_id}-mapping.csv"'},
    )


async def _invalid_input(request: Request, exc: InvalidInputError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _group_not_found(request: Request, exc: GroupNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def create_app(
    settings: Settings | None = None,
    store: GroupStore | None = None,
    classifier: TagClassifier | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.SITE_NAME,
        description="Corporate ownership trees: upload, tag, comment, and explore them as dashboards, trees and lists.",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.store = store or build_store(settings)
    app.state.classifier = classifier or build_classifier(
        settings.CLASSIFICATION_TABLE_PATH, settings.HOME_COUNTRY, settings.HOME_COUNTRY_CODE
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(InvalidInputError, _invalid_input)
    app.add_exception_handler(GroupNotFoundError, _group_not_found)

    app.include_router(router)
    app.include_router(admin.auth_router, prefix="/admin/auth", tags=["admin"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    logger.info("%s started (%s, %s storage)", settings.SITE_NAME, settings.ENV, settings.STORAGE_BACKEND)
    return app


app = create_app()
