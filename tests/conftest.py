import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on (use 'production' for PostgreSQL)",
    )


def pytest_sessionstart(session):
    """Initialize the ordering domain and push its context before collection.

    Step modules and fixtures can then refer to ``current_domain``.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from ordering.domain import ordering

    ordering.init()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Mark tests by layer, from the directory they live in."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(scope="session", autouse=True)
def ordering_schema():
    """Create SQL tables when running against a SQL provider; no-op in memory."""
    from ordering.domain import ordering
    from ordering.utils.db import drop_db, setup_db

    setup_db(ordering)
    yield
    drop_db(ordering)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Reset stores and swap adapters back to their defaults after every test."""
    yield

    from ordering.carrier import reset_carrier
    from ordering.config import reset_settings_store
    from ordering.gateway import reset_gateway
    from ordering.jobs import reset_dispatcher
    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()
    current_domain.event_store.store._data_reset()

    reset_gateway()
    reset_carrier()
    reset_dispatcher()
    reset_settings_store()
