import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from signoff.config.settings import Settings
from signoff.database import connection
from signoff.database.connection import build_conninfo, close_pool, get_connection, init_pool
from signoff.extraction.models import CaptureTemplate
from tests.factories import make_template
from tests.integration.seed import insert_template

_TABLES = (
    "signed_matches",
    "review_items",
    "signed_documents",
    "work_orders",
    "capture_templates",
    "legacy_review_rows",
    "legacy_work_orders",
)


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "signoff_test")
    return Settings(
        recognition_provider="none",
        generative_provider="none",
        legacy_mirror_enabled=True,
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        with psycopg.connect(build_conninfo(test_settings), connect_timeout=3) as conn:
            schema = Path(connection.__file__).with_name("schema.sql").read_text(encoding="utf-8")
            conn.execute(schema)
            conn.commit()
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to point at a scratch database")
    init_pool(test_settings)
    try:
        yield
    finally:
        close_pool()


@pytest.fixture(autouse=True)
def clean_tables(integration_pool: None) -> Generator[None, None, None]:
    _truncate()
    yield
    _truncate()


def _truncate() -> None:
    with get_connection() as conn:
        conn.execute(f"TRUNCATE {', '.join(_TABLES)} RESTART IDENTITY CASCADE")
        conn.commit()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def acme_template(db_conn: psycopg.Connection[Any]) -> CaptureTemplate:
    template = make_template()
    insert_template(db_conn, template)
    return template
