# tangabiz/conftest.py
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tangabiz.core.database import create_all_tables, dispose_engine, init_engine  # noqa: E402


@pytest.fixture(scope="function", autouse=True)
def sqlite_db(tmp_path):
    """
    Point the engine at a fresh SQLite file for each test.

    A file (not :memory:) so concurrent reservation tests share one database
    across connections.
    """
    url = f"sqlite:///{tmp_path / 'tangabiz.db'}"
    init_engine(url)
    create_all_tables()
    yield url
    dispose_engine()


@pytest.fixture
def now():
    """A fixed instant mid-month so billing-period boundaries are explicit."""
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def trial_org(now):
    """Organization one hour into its trial, owned by 'owner'."""
    from tangabiz.features.organizations.service import create_organization

    return create_organization("Duka Yetu", "owner", now=now - timedelta(hours=1), organization_id="org-trial")


@pytest.fixture
def expired_org(now):
    """Organization whose trial ended a day ago, owned by 'owner'."""
    from tangabiz.features.organizations.service import create_organization

    return create_organization("Old Shop", "owner", now=now - timedelta(days=4), organization_id="org-expired")


@pytest.fixture
def starter_org(now):
    """Organization on a paid starter plan, owned by 'owner'."""
    from tangabiz.features.organizations.service import create_organization
    from tangabiz.features.plans.service import assign_plan

    org = create_organization("Starter Shop", "owner", now=now - timedelta(days=30), organization_id="org-starter")
    assign_plan(org.id, "starter", now=now - timedelta(days=10))
    return org
