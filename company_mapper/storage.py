"""
Group persistence: uploaded company trees plus their tags and comments.

Layout (file backend, under DATA_DIR):

    metadata.json        groups, tags and comments for every group
    groups/<id>.json     the uploaded CompanyData of one group

Every write rewrites the whole file (temp file + rename). There is no
locking and no transaction across files; the last writer wins.

The memory backend keeps the same JSON-shaped state in process and is
lost on restart.
"""
import json
import logging
import os
import re
import secrets
import tempfile
import time
import unicodedata
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from .config import Settings
from .errors import GroupNotFoundError, InvalidInputError
from .models import (
    Comment,
    CompanyComments,
    CompanyData,
    CompanyTags,
    CustomTag,
    DiliTrustModule,
    Group,
    GroupMetadata,
    TagType,
    utcnow,
)

logger = logging.getLogger(__name__)

GROUP_ID_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
REQUIRED_COMPANY_FIELDS = ["accountId", "name", "allTags", "depth"]

# Fields a group update may change
UPDATABLE_FIELDS = {"name", "description", "tags", "dilitrust_modules", "comments", "is_public"}


# ---------------------------------------------------------------------------
# Upload validation
# ---------------------------------------------------------------------------

def validate_company_data(raw, max_depth: int = 100) -> CompanyData:
    """
    Check an uploaded scraper document and parse it.

    Raises InvalidInputError naming the first problem found: missing
    top-level objects or required company fields, nesting deeper than
    ``max_depth``, or a node whose depth is not its parent's depth + 1.
    """
    if not isinstance(raw, dict):
        raise InvalidInputError("The JSON document must be an object")
    company = raw.get("company")
    if not isinstance(company, dict):
        raise InvalidInputError('The document must contain a "company" object')
    for field in REQUIRED_COMPANY_FIELDS:
        if field not in company:
            raise InvalidInputError(f'The field "company.{field}" is required')
    if not isinstance(raw.get("metadata"), dict):
        raise InvalidInputError('The document must contain a "metadata" object')

    # Walk the raw dicts iteratively so hostile nesting fails here, not in a recursive parser
    stack = [(company, 0, "company")]
    while stack:
        node, expected_depth, where = stack.pop()
        if not isinstance(node, dict):
            raise InvalidInputError(f"{where} must be an object")
        if expected_depth > max_depth:
            raise InvalidInputError(f"The company tree is nested deeper than {max_depth} levels")
        if node.get("depth") != expected_depth:
            raise InvalidInputError(
                f'{where} ("{node.get("name", "?")}") has depth {node.get("depth")!r}, expected {expected_depth}'
            )
        subs = node.get("subsidiaries") or []
        if not isinstance(subs, list):
            raise InvalidInputError(f"{where}.subsidiaries must be a list")
        for i, sub in enumerate(subs):
            stack.append((sub, expected_depth + 1, f"{where}.subsidiaries[{i}]"))

    try:
        return CompanyData.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        raise InvalidInputError(f"Invalid company data at {location}: {first['msg']}") from e


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or "0"


def slugify(name: str) -> str:
    text = unicodedata.normalize("NFD", name.lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-") or "group"


def generate_group_id(name: str) -> str:
    return f"{slugify(name)}-{_base36(int(time.time() * 1000))}"


def generate_comment_id() -> str:
    return f"comment-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class GroupStore(ABC):
    """Group, tag and comment operations over a JSON-shaped state."""

    site_name = "Company Mapper"

    # --- backend hooks ---

    @abstractmethod
    def _read_state(self) -> dict: ...

    @abstractmethod
    def _write_state(self, state: dict) -> None: ...

    @abstractmethod
    def _read_data(self, group_id: str) -> dict | None: ...

    @abstractmethod
    def _write_data(self, group_id: str, data: dict) -> None: ...

    @abstractmethod
    def _delete_data(self, group_id: str) -> None: ...

    def _empty_state(self) -> dict:
        return {
            "groups": {},
            "tags": {},
            "comments": {},
            "config": {"siteName": self.site_name, "lastUpdated": utcnow().isoformat()},
        }

    def _save(self, state: dict):
        state.setdefault("config", {})["lastUpdated"] = utcnow().isoformat()
        self._write_state(state)

    def _require_group(self, state: dict, group_id: str):
        if group_id not in state["groups"]:
            raise GroupNotFoundError(group_id)

    # --- groups ---

    def list_groups(self, public_only: bool = False) -> list[GroupMetadata]:
        groups = [GroupMetadata.model_validate(g) for g in self._read_state()["groups"].values()]
        if public_only:
            groups = [g for g in groups if g.is_public]
        return groups

    def get_group_metadata(self, group_id: str) -> GroupMetadata | None:
        if not GROUP_ID_RE.match(group_id):
            return None
        raw = self._read_state()["groups"].get(group_id)
        return GroupMetadata.model_validate(raw) if raw else None

    def get_group(self, group_id: str) -> Group | None:
        metadata = self.get_group_metadata(group_id)
        if metadata is None:
            return None
        data = self._read_data(group_id)
        if data is None:
            logger.warning("Group %s has metadata but no data file", group_id)
            return None
        return Group(metadata=metadata, data=CompanyData.model_validate(data))

    def create_group(
        self,
        name: str,
        data: CompanyData,
        description: str = "",
        tags: list[TagType] | None = None,
        dilitrust_modules: list[DiliTrustModule] | None = None,
        comments: str = "",
        is_public: bool = True,
    ) -> GroupMetadata:
        state = self._read_state()
        group_id = generate_group_id(name)
        suffix = 1
        while group_id in state["groups"]:
            suffix += 1
            group_id = f"{generate_group_id(name)}-{suffix}"

        metadata = GroupMetadata(
            id=group_id,
            name=name,
            description=description,
            tags=tags or [],
            dilitrust_modules=dilitrust_modules or [],
            comments=comments,
            is_public=is_public,
        )
        self._write_data(group_id, _dump(data))
        state["groups"][group_id] = _dump(metadata)
        self._save(state)
        logger.info("Created group %s (%s)", group_id, name)
        return metadata

    def update_group(self, group_id: str, updates: dict,
                     new_data: CompanyData | None = None) -> GroupMetadata | None:
        state = self._read_state()
        raw = state["groups"].get(group_id)
        if raw is None:
            return None

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot update group fields: {', '.join(sorted(unknown))}")

        current = GroupMetadata.model_validate(raw)
        changes = {k: v for k, v in updates.items() if v is not None}
        updated = GroupMetadata.model_validate({
            **current.model_dump(),
            **changes,
            "id": group_id,
            "created_at": current.created_at,
            "updated_at": utcnow(),
        })
        if new_data is not None:
            self._write_data(group_id, _dump(new_data))
        state["groups"][group_id] = _dump(updated)
        self._save(state)
        logger.info("Updated group %s (%s)", group_id, ", ".join(sorted(changes)) or "data only")
        return updated

    def delete_group(self, group_id: str) -> bool:
        state = self._read_state()
        if group_id not in state["groups"]:
            return False
        del state["groups"][group_id]
        state["tags"].pop(group_id, None)
        state["comments"].pop(group_id, None)
        self._delete_data(group_id)
        self._save(state)
        logger.info("Deleted group %s", group_id)
        return True

    # --- custom tags ---

    def get_tags(self, group_id: str) -> CompanyTags:
        raw = self._read_state()["tags"].get(group_id, {})
        return {
            account_id: [CustomTag.model_validate(t) for t in tags]
            for account_id, tags in raw.items()
        }

    def add_tag(self, group_id: str, company_id: str, tag: CustomTag) -> list[CustomTag]:
        """Attach ``tag`` to a company. A tag of the same type is replaced, never duplicated."""
        state = self._read_state()
        self._require_group(state, group_id)
        company_tags = state["tags"].setdefault(group_id, {}).setdefault(company_id, [])
        company_tags[:] = [t for t in company_tags if t["type"] != tag.type.value]
        company_tags.append(_dump(tag))
        self._save(state)
        return [CustomTag.model_validate(t) for t in company_tags]

    def remove_tag(self, group_id: str, company_id: str, tag_type: TagType) -> bool:
        state = self._read_state()
        self._require_group(state, group_id)
        group_tags = state["tags"].get(group_id, {})
        company_tags = group_tags.get(company_id, [])
        remaining = [t for t in company_tags if t["type"] != TagType(tag_type).value]
        if len(remaining) == len(company_tags):
            return False
        if remaining:
            group_tags[company_id] = remaining
        else:
            del group_tags[company_id]
        self._save(state)
        return True

    # --- comments ---

    def get_comments(self, group_id: str) -> CompanyComments:
        raw = self._read_state()["comments"].get(group_id, {})
        return {
            account_id: [Comment.model_validate(c) for c in comments]
            for account_id, comments in raw.items()
        }

    def add_comment(self, group_id: str, company_id: str, text: str,
                    author: str | None = None) -> Comment:
        state = self._read_state()
        self._require_group(state, group_id)
        comment = Comment(
            id=generate_comment_id(),
            company_account_id=company_id,
            text=text,
            author=author or "Admin",
        )
        state["comments"].setdefault(group_id, {}).setdefault(company_id, []).append(_dump(comment))
        self._save(state)
        return comment

    def _locate_comment(self, state: dict, group_id: str, comment_id: str):
        for account_id, comments in state["comments"].get(group_id, {}).items():
            for i, raw in enumerate(comments):
                if raw["id"] == comment_id:
                    return account_id, i
        return None

    def update_comment(self, group_id: str, comment_id: str, text: str) -> Comment | None:
        state = self._read_state()
        found = self._locate_comment(state, group_id, comment_id)
        if found is None:
            return None
        account_id, i = found
        comments = state["comments"][group_id][account_id]
        updated = Comment.model_validate(comments[i]).model_copy(
            update={"text": text, "updated_at": utcnow()}
        )
        comments[i] = _dump(updated)
        self._save(state)
        return updated

    def delete_comment(self, group_id: str, comment_id: str) -> bool:
        state = self._read_state()
        found = self._locate_comment(state, group_id, comment_id)
        if found is None:
            return False
        account_id, i = found
        comments = state["comments"][group_id][account_id]
        del comments[i]
        if not comments:
            del state["comments"][group_id][account_id]
        self._save(state)
        return True


class MemoryGroupStore(GroupStore):
    """Process-local store; everything is lost on restart."""

    def __init__(self):
        self._state = self._empty_state()
        self._data: dict[str, str] = {}

    # State is kept as JSON text so callers never share mutable structures with the store
    def _read_state(self) -> dict:
        return json.loads(json.dumps(self._state))

    def _write_state(self, state: dict):
        self._state = json.loads(json.dumps(state))

    def _read_data(self, group_id: str) -> dict | None:
        raw = self._data.get(group_id)
        return json.loads(raw) if raw is not None else None

    def _write_data(self, group_id: str, data: dict):
        self._data[group_id] = json.dumps(data)

    def _delete_data(self, group_id: str):
        self._data.pop(group_id, None)


class JsonFileGroupStore(GroupStore):
    """JSON files under ``data_dir``."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.groups_dir = self.data_dir / "groups"
        self.metadata_path = self.data_dir / "metadata.json"

    def _write_json(self, path: Path, payload: dict):
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _read_state(self) -> dict:
        if not self.metadata_path.exists():
            return self._empty_state()
        with open(self.metadata_path, encoding="utf-8") as f:
            state = json.load(f)
        for key in ("groups", "tags", "comments"):
            state.setdefault(key, {})
        return state

    def _write_state(self, state: dict):
        self._write_json(self.metadata_path, state)

    def _data_path(self, group_id: str) -> Path:
        return self.groups_dir / f"{group_id}.json"

    def _read_data(self, group_id: str) -> dict | None:
        path = self._data_path(group_id)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def _write_data(self, group_id: str, data: dict):
        self._write_json(self._data_path(group_id), data)

    def _delete_data(self, group_id: str):
        self._data_path(group_id).unlink(missing_ok=True)


def build_store(settings: Settings) -> GroupStore:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        store = MemoryGroupStore()
    elif backend == "file":
        store = JsonFileGroupStore(settings.data_path())
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND {settings.STORAGE_BACKEND!r} (expected 'file' or 'memory')")
    store.site_name = settings.SITE_NAME
    logger.info("Using %s group store", backend)
    return store
