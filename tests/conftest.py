import os

from tests.utils.db import cleanup_test_database, provision_test_database

# app.py binds the engine at import time, so the URL must be in place first.
_TEST_DB_NAME, _TEST_DB_URI, _MANAGED_TEST_DB = provision_test_database()
os.environ["DATABASE_URL"] = _TEST_DB_URI


def pytest_sessionfinish(session, exitstatus):
    if _MANAGED_TEST_DB:
        cleanup_test_database(_TEST_DB_NAME)
