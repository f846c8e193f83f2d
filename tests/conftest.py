"""Common test fixtures and configurations."""

import json
import time
from typing import Any, AsyncGenerator, Callable, Dict, Optional
from unittest.mock import AsyncMock

import pytest
from loguru import logger
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from otterhound.core.security import build_signature_header
from otterhound.models import CheckoutSession, UserSubscription
from otterhound.schemas.events import CHECKOUT_SESSION_COMPLETED, Event, SubscriptionDetail
from otterhound.scripts.init_db import create_tables
from otterhound.services.stripe_client import StripeClient

TEST_SECRET = "whsec_test"


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A file-backed SQLite engine with both tables created."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'otterhound.db'}", echo=False)
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def seed_checkout_session(engine: AsyncEngine) -> Callable:
    async def _seed(external_id: str = "cs_1", user_id: int = 42, tier_id: int = 3, completed: bool = False):
        async with engine.begin() as conn:
            await conn.execute(
                insert(CheckoutSession).values(
                    {
                        CheckoutSession.external_id: external_id,
                        CheckoutSession.completed: completed,
                        CheckoutSession.user_id: user_id,
                        CheckoutSession.tier_id: tier_id,
                    }
                )
            )
    return _seed


@pytest.fixture
def fetch_subscriptions(engine: AsyncEngine) -> Callable:
    async def _fetch():
        async with engine.connect() as conn:
            return (await conn.execute(select(UserSubscription.__table__))).all()
    return _fetch


@pytest.fixture
def fetch_checkout_session(engine: AsyncEngine) -> Callable:
    async def _fetch(external_id: str = "cs_1"):
        async with engine.connect() as conn:
            result = await conn.execute(
                select(CheckoutSession.completed).where(CheckoutSession.external_id == external_id)
            )
            return result.scalar_one_or_none()
    return _fetch


@pytest.fixture
def mock_stripe_client() -> AsyncMock:
    """A StripeClient whose subscription lookup returns a fixed period."""
    client = AsyncMock(spec=StripeClient)
    client.retrieve_subscription.return_value = SubscriptionDetail(created=1700000000, current_period_end=1702592000)
    return client


@pytest.fixture
def event_factory() -> Callable[..., Event]:
    """Factory to create events shaped like Stripe's."""
    def _factory(
        event_type: str = CHECKOUT_SESSION_COMPLETED,
        data_object: Optional[Dict[str, Any]] = None,
        created: int = 1700000000,
        event_id: Optional[str] = "evt_test_event",
    ) -> Event:
        if data_object is None:
            data_object = {"id": "cs_1", "subscription": "sub_1"}
        return Event.model_validate(
            {"id": event_id, "created": created, "type": event_type, "data": {"object": data_object}}
        )
    return _factory


@pytest.fixture
def signed_delivery() -> Callable:
    """Build (body, headers) for a push delivery signed with TEST_SECRET."""
    def _signed(payload: Dict[str, Any], timestamp: Optional[int] = None, secret: str = TEST_SECRET):
        body = json.dumps(payload).encode()
        header = build_signature_header(secret, body, timestamp=timestamp if timestamp is not None else int(time.time()))
        return body, {"Stripe-Signature": header, "Content-Type": "application/json"}
    return _signed


@pytest.fixture
def captured_logs():
    """Collect loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
