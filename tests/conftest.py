"""
Main conftest file that imports and re-exports all fixtures from modular files.
This approach improves maintainability by organizing fixtures into logical modules.
"""

import os

from dotenv import load_dotenv

# Explicitly load the test environment variables before importing any app modules
dotenv_path = os.path.join(os.path.dirname(__file__), "..", ".env.test")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path, override=True)
else:
    print(f"Warning: .env.test file not found at {dotenv_path}")

os.environ.setdefault("CONSENT_SERVICE_ENVIRONMENT", "testing")
os.environ.setdefault(
    "CONSENT_SERVICE_DATABASE_URL", "sqlite+aiosqlite:///./consent_service_test.db"
)
os.environ.setdefault("CONSENT_SERVICE_JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("CONSENT_SERVICE_RATE_LIMIT_ENABLED", "false")

# Import and re-export fixtures from modular files
# The imports register the fixtures with pytest for every test module
from tests.fixtures.client import app_factory, client, test_app  # noqa: E402,F401
from tests.fixtures.db import db_session, session_factory, test_engine  # noqa: E402,F401
from tests.fixtures.helpers import (  # noqa: E402,F401
    issuer,
    seeded_user,
    test_settings,
    validator,
)
