"""Schema management for SQL-backed providers of the ordering domain.

The in-memory provider used in development and tests needs no schema; for
``postgresql`` and ``sqlite`` providers the tables are created from the
metadata Protean builds when each repository's DAO is first touched.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    return [
        (name, provider)
        for name, provider in domain.providers.items()
        if provider.conn_info["provider"] in SQL_PROVIDERS
    ]


def setup_db(domain: Domain) -> int:
    """Create tables for every aggregate and entity. Returns providers touched."""
    providers = 0
    with domain.domain_context():
        for name, provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            for registry in (domain.registry.aggregates, domain.registry.entities):
                for _, record in registry.items():
                    if record.cls.meta_.provider == name:
                        domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            providers += 1
    return providers


def drop_db(domain: Domain) -> int:
    """Drop every table the domain created. Returns providers touched."""
    providers = 0
    with domain.domain_context():
        for _, provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            providers += 1
    return providers
