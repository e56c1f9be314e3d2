"""Shared pytest fixtures for reservation engine tests."""
import sys
sys.dont_write_bytecode = True

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from guesthouse.domain.engine import ReservationEngine  # noqa: E402
from guesthouse.domain.models import Actor, Room  # noqa: E402
from guesthouse.infra.catalog import InMemoryCatalog  # noqa: E402
from guesthouse.store.memory_backend import InMemoryReservationStore  # noqa: E402

from helpers import HOUSE_ID, OTHER_ROOM_ID, ROOM_ID  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset global JWKS cache to avoid cross-test contamination."""
    import guesthouse.api.auth as auth_module

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0


@pytest.fixture(autouse=True)
def _reset_engine_singleton():
    import guesthouse.api.dependencies as deps

    deps._engine = None
    yield
    deps._engine = None


@pytest.fixture
def catalog():
    return InMemoryCatalog(
        [
            Room(id=ROOM_ID, guest_house_id=HOUSE_ID, price_per_person=Decimal("600.00")),
            Room(id=OTHER_ROOM_ID, guest_house_id=HOUSE_ID, price_per_person=Decimal("400.00")),
        ]
    )


@pytest.fixture
def store():
    return InMemoryReservationStore(lock_timeout_ms=2000)


@pytest.fixture
def engine(store, catalog):
    return ReservationEngine(store, catalog, retry_attempts=3, retry_backoff_ms=0, sleep=lambda s: None)


@pytest.fixture
def requester():
    return Actor(id="user-a")


@pytest.fixture
def other_requester():
    return Actor(id="user-b")


@pytest.fixture
def operator():
    return Actor(id="op-1", is_operator=True)
