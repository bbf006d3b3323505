from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.engine import URL, make_url

TEST_DB_NAME_RE = re.compile(r"(^|_)test(_|$)", re.IGNORECASE)
LOCAL_TEST_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "::1",
        "postgres",
        "offer_engine_postgres",
    }
)


@dataclass(frozen=True, slots=True)
class IntegrationDbTarget:
    database_name: str
    host: str
    unsafe_reason: str | None

    @property
    def is_safe(self) -> bool:
        return self.unsafe_reason is None


def _unsafe_reason(url: URL) -> str | None:
    database_name = (url.database or "").strip()
    host = (url.host or "").strip().lower()

    if url.get_backend_name() != "postgresql":
        return "integration tests run only against PostgreSQL"
    if not database_name:
        return "database name is empty"
    if TEST_DB_NAME_RE.search(database_name) is None:
        return "database name must mark it as a test database (e.g. 'offer_engine_test')"
    if host not in LOCAL_TEST_HOSTS:
        return f"host '{host}' is not a local test host"
    return None


def inspect_integration_db(database_url: str) -> IntegrationDbTarget:
    url = make_url(database_url)
    return IntegrationDbTarget(
        database_name=(url.database or "").strip(),
        host=(url.host or "").strip().lower(),
        unsafe_reason=_unsafe_reason(url),
    )


def assert_safe_integration_db(database_url: str) -> None:
    target = inspect_integration_db(database_url)
    if target.is_safe:
        return

    raise RuntimeError(
        "Refusing to TRUNCATE offer tables outside a local test database: "
        f"{target.unsafe_reason} (database='{target.database_name}', host='{target.host}')"
    )
