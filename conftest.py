"""Configure pytest for the billing sync project."""
import os
import sys
from pathlib import Path

import pytest

# =============================================================================
# Test Environment Configuration
# =============================================================================
# Set environment BEFORE any app imports so load_config() sees it
os.environ.setdefault("RAILWAY_ENVIRONMENT", "test")
os.environ.setdefault("BILLING_DB_PATH", str(Path(__file__).parent / "data" / "test_billing.db"))

# Project root on sys.path so top-level packages import without install
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture
def billing_db(tmp_path, monkeypatch):
    """Fresh SQLite database file for one test."""
    from persistence.db import init_db, reset_db

    monkeypatch.setenv("BILLING_DB_PATH", str(tmp_path / "billing.db"))
    init_db()
    yield tmp_path / "billing.db"
    reset_db()
