"""
Test Suite Configuration
"""
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from analytics_dashboard.database.models import Base
from analytics_dashboard.domain.metric import MetricData
from analytics_dashboard.domain.policy import DomainPolicy
from analytics_dashboard.messaging.event_bus import InMemoryEventBus


T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock handed to DomainPolicy"""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy(clock) -> DomainPolicy:
    """Default bounds with a controllable clock"""
    return DomainPolicy(clock=clock)


@pytest.fixture
async def test_engine():
    """Create an in-memory database shared by every session of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def samples():
    """Three samples one hour apart with values 10, 20, 30"""
    return [
        MetricData(metric_id="metric-1", timestamp=T0, value=10.0, dimensions={"region": "eu"}),
        MetricData(
            metric_id="metric-1",
            timestamp=T0 + timedelta(hours=1),
            value=20.0,
            dimensions={"region": "us"},
        ),
        MetricData(
            metric_id="metric-1",
            timestamp=T0 + timedelta(hours=2),
            value=30.0,
            dimensions={"region": "eu", "tier": "gold"},
        ),
    ]
