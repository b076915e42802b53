"""Schema management for relational providers (sqlite, postgresql)."""

import structlog
from protean.domain import Domain
from sqlalchemy import create_engine

logger = structlog.get_logger(__name__)

_RELATIONAL = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    for name, provider in domain.providers.items():
        if provider.conn_info["provider"] in _RELATIONAL:
            yield name, provider


def setup_db(domain: Domain) -> list[str]:
    """Create the tables for every aggregate stored in a relational provider.

    Returns the names of the providers that were set up.
    """
    prepared = []
    with domain.domain_context():
        for name, provider in _relational_providers(domain):
            # Touching the DAO registers the aggregate's table on the provider metadata
            for _, record in domain.registry.aggregates.items():
                if record.cls.meta_.provider == name:
                    domain.repository_for(record.cls)._dao  # noqa: B018

            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.create_all(engine)
            logger.info("Schema created", provider=name, tables=sorted(provider._metadata.tables))
            prepared.append(name)
    return prepared


def drop_db(domain: Domain) -> list[str]:
    dropped = []
    with domain.domain_context():
        for name, provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            logger.info("Schema dropped", provider=name)
            dropped.append(name)
    return dropped
