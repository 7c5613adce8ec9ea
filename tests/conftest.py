"""
Pytest configuration and fixtures for Company Mapper.

This module provides:
- Sample company trees (raw scraper JSON and parsed models)
- Test settings with a fast bcrypt cost and a known admin password
- An API client backed by an in-memory store
"""

import pytest
from fastapi.testclient import TestClient

from company_mapper.auth import hash_password
from company_mapper.config import Settings
from company_mapper.main import create_app
from company_mapper.models import Company, CompanyData
from company_mapper.storage import MemoryGroupStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct horse battery"


# ============================================================
# TREE FIXTURES
# ============================================================

def make_raw_document():
    """
    Scraper document used across tests:

        A (depth 0)
        ├── B (1, Energy, 50-100 employees)
        │   └── C (2, Energy)
        └── D (1, Water, website, Germany)
    """
    return {
        "company": {
            "accountId": "acc-a",
            "name": "A",
            "allTags": [],
            "depth": 0,
            "tag": "",
            "parentCompany": None,
            "profileUrl": "https://example.org/a",
            "website": None,
            "subsidiaries": [
                {
                    "accountId": "acc-b",
                    "name": "B",
                    "allTags": ["Energy", "50-100 employees"],
                    "depth": 1,
                    "tag": "Energy",
                    "parentCompany": {"name": "A", "nominationLink": "https://example.org/a"},
                    "profileUrl": "https://example.org/b",
                    "website": None,
                    "subsidiaries": [
                        {
                            "accountId": "acc-c",
                            "name": "C",
                            "allTags": ["Energy"],
                            "depth": 2,
                            "tag": "Energy",
                            "parentCompany": {"name": "B", "nominationLink": "https://example.org/b"},
                            "profileUrl": "https://example.org/c",
                            "website": None,
                            "subsidiaries": [],
                        }
                    ],
                },
                {
                    "accountId": "acc-d",
                    "name": "D",
                    "allTags": ["Water", "Germany"],
                    "depth": 1,
                    "tag": "Water",
                    "parentCompany": {"name": "A", "nominationLink": "https://example.org/a"},
                    "profileUrl": "https://example.org/d",
                    "website": "https://d.example.org",
                    "subsidiaries": [],
                },
            ],
        },
        "metadata": {
            "duration": 12.5,
            "startTime": 1700000000000,
            "endTime": 1700000012500,
            "errors": [],
            "maxDepth": 2,
            "status": "completed",
            "totalCompaniesScraped": 4,
            "urlsVisited": [],
        },
    }


@pytest.fixture
def raw_document():
    return make_raw_document()


@pytest.fixture
def company_data(raw_document) -> CompanyData:
    return CompanyData.model_validate(raw_document)


@pytest.fixture
def tree(company_data) -> Company:
    return company_data.company


@pytest.fixture
def chain_tree() -> Company:
    """The three-node chain root(A) -> B -> C with no siblings."""
    return Company.model_validate({
        "accountId": "a", "name": "A", "allTags": [], "depth": 0,
        "subsidiaries": [{
            "accountId": "b", "name": "B", "allTags": ["Energy", "50-100 employees"], "depth": 1,
            "subsidiaries": [{"accountId": "c", "name": "C", "allTags": ["Energy"], "depth": 2}],
        }],
    })


# ============================================================
# APP FIXTURES
# ============================================================

@pytest.fixture(scope="session")
def settings() -> Settings:
    return Settings(
        ENV="test",
        STORAGE_BACKEND="memory",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD_HASH=hash_password(ADMIN_PASSWORD, rounds=4),
        BCRYPT_ROUNDS=4,
        JWT_SECRET_KEY="test-secret-key",
        CLASSIFICATION_TABLE_PATH="",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def store():
    return MemoryGroupStore()


@pytest.fixture
def client(settings, store):
    return TestClient(create_app(settings=settings, store=store))


@pytest.fixture
def admin_headers(client):
    """Bearer headers for the admin; the login cookie is dropped so the client stays anonymous."""
    resp = client.post("/admin/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}


@pytest.fixture
def group_id(client, admin_headers, raw_document):
    resp = client.post(
        "/admin/groups",
        json={"name": "Énergie Groupe", "description": "test group", "jsonData": raw_document},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    return resp.json()["id"]
