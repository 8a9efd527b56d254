import os

import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# Rebuilt per interpreter; a cached wheel may carry a .so for another Python.
_C_EXT_PACKAGES = ["psycopg2"]


def _install(session: nox.Session, with_postgresql: bool = False) -> None:
    """Install the ordering package with its test extra."""
    extras = "test,postgresql" if with_postgresql else "test"
    session.run("poetry", "install", "--extras", extras, external=True)
    if with_postgresql:
        session.run("pip", "install", "--force-reinstall", "--no-cache-dir", *_C_EXT_PACKAGES)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Full suite on the in-memory provider."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Aggregates, status tables and the calculator only."""
    _install(session)
    session.run("pytest", "-m", "domain")


@nox.session(python=PYTHON_VERSIONS)
def tests_api(session: nox.Session) -> None:
    """HTTP endpoints and webhooks through the FastAPI TestClient."""
    _install(session)
    session.run("pytest", "tests/ordering/integration/")


@nox.session(python="3.12")
def tests_postgresql(session: nox.Session) -> None:
    """Full suite against PostgreSQL; needs DATABASE_URL."""
    if not os.environ.get("DATABASE_URL"):
        session.skip("DATABASE_URL is not set")
    _install(session, with_postgresql=True)
    session.run("pytest", "--env", "production", *session.posargs)
