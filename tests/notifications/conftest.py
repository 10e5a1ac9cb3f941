import pytest
from notifications.channel import get_channel, reset_channels
from notifications.engine import get_engine, reset_engine
from notifications.settings import reset_settings
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def notifications_bed():
    from notifications.domain import notifications

    bed = DomainFixture(notifications)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(notifications_bed):
    with notifications_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _fresh_engine(_ctx, monkeypatch):
    """Every test gets fresh settings, fake channels and a fresh engine."""
    monkeypatch.setenv("NOTIFICATIONS_RETRY_BACKOFF_SECONDS", "0")
    reset_settings()
    reset_channels()
    reset_engine()
    yield
    reset_engine()
    reset_channels()
    reset_settings()


@pytest.fixture()
def engine():
    return get_engine()


@pytest.fixture()
def directory(engine):
    return engine.directory


@pytest.fixture()
def in_app():
    return get_channel("InApp")


@pytest.fixture()
def email():
    return get_channel("Email")


@pytest.fixture()
def chat():
    return get_channel("Chat")


@pytest.fixture()
def sms():
    return get_channel("SMS")


@pytest.fixture()
def push():
    return get_channel("Push")
