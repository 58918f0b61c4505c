"""
Pytest configuration and fixtures for review-ingestion tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
from datetime import datetime, timezone
from typing import Generator

import pytest

from review_ingestion.core.validators import ReviewValidator

from .fakes import (
    FakeObjectStore,
    InMemoryFileRecordRepository,
    InMemoryProviderRepository,
    InMemoryReviewRepository,
    MutableClock,
    make_line,
    make_raw,
)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the pipeline schema applied
    """
    import psycopg
    from testcontainers.postgres import PostgresContainer

    from review_ingestion.warehouse.schema_mgmt import load_schema_sql

    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_reviews",
        password="test_password",
        dbname="test_reviewsystem",
        driver=None,
    ) as postgres:
        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(load_schema_sql())
            conn.commit()

        yield postgres


@pytest.fixture(scope="session")
def db_pool(postgres_container):
    """
    Open a DatabaseConnectionPool against the test container

    Yields:
        Opened DatabaseConnectionPool
    """
    from review_ingestion.warehouse.connection import DatabaseConnectionPool

    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_reviewsystem",
        user="test_reviews",
        password="test_password",
        min_size=1,
        max_size=5,
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(db_pool):
    """
    Provide a clean database by truncating all tables before each test

    Yields:
        DatabaseConnectionPool over empty tables
    """
    db_pool.execute_command(
        "TRUNCATE TABLE reviews, file_records, providers RESTART IDENTITY CASCADE"
    )
    yield db_pool


# =======================
# IN-MEMORY FIXTURES
# =======================

@pytest.fixture
def clock() -> MutableClock:
    """Controllable UTC clock starting at 2025-06-01 12:00"""
    return MutableClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def file_record_repository() -> InMemoryFileRecordRepository:
    return InMemoryFileRecordRepository()


@pytest.fixture
def provider_repository() -> InMemoryProviderRepository:
    return InMemoryProviderRepository()


@pytest.fixture
def review_repository() -> InMemoryReviewRepository:
    return InMemoryReviewRepository()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def validator(clock) -> ReviewValidator:
    return ReviewValidator(clock=clock)


# =======================
# SAMPLE DATA FIXTURES
# =======================

@pytest.fixture
def sample_review_line() -> str:
    return make_line()


@pytest.fixture
def sample_raw_review():
    return make_raw()


@pytest.fixture(scope="function")
def env_cleanup(monkeypatch) -> Generator[None, None, None]:
    """Remove pipeline environment variables for the duration of a test"""
    from review_ingestion.config import ENV_OVERRIDES

    for variable in [*ENV_OVERRIDES, "PIPELINE_CONFIG"]:
        monkeypatch.delenv(variable, raising=False)
    yield
