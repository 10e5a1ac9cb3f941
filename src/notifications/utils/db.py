from notifications.notification.dedupe import create_dedupe_engine, metadata as dedupe_metadata
from notifications.settings import get_settings
from protean.domain import Domain
from sqlalchemy import create_engine


def _rdbms_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in ("sqlite", "postgresql"):
            yield provider


def setup_db(domain: Domain):
    """Setup database schema: aggregate tables and the dedupe table"""
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Ensure aggregates are loaded and registered with SQLAlchemy
            #   by accessing the _dao attribute of each repository.
            for _, aggregate_record in domain.registry.aggregates.items():
                if aggregate_record.cls.meta_.provider == provider.name:
                    domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)

    dedupe_metadata.create_all(create_dedupe_engine(get_settings().dedupe_database_uri))


def drop_db(domain: Domain):
    """Drop database schema"""
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)

    dedupe_metadata.drop_all(create_dedupe_engine(get_settings().dedupe_database_uri))
