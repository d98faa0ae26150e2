"""Shared fixtures: a throwaway SQLite database with a seeded shop."""

from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.application.event_bus import EventBus
from app.context import Repositories
from app.domain.entities import FileRef, GeoPoint, Order, PrintConfig, Shop, User, UserRole
from app.domain.events import DomainEvent, EventType
from app.infrastructure.auth import Identity
from app.infrastructure.config import Settings
from app.infrastructure.database import Database
from app.main import create_app

SHOP_LOCATION = GeoPoint(lat=12.9716, lng=77.5946)


@dataclass
class Seed:
    """Users and shop present in every seeded database."""

    student: User
    owner: User
    other_student: User
    shop: Shop


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    """Create a file-backed SQLite database with all tables."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def repos(database: Database) -> Repositories:
    return Repositories.create(database)


async def seed_repositories(repos: Repositories) -> Seed:
    """Insert a student, a shop owner and their shop."""
    student = await repos.users.add(
        User(id="student-1", name="Asha", email="asha@example.edu", phone="+919800000001")
    )
    other = await repos.users.add(User(id="student-2", name="Kiran"))
    owner = await repos.users.add(
        User(
            id="owner-1",
            name="Ravi",
            email="ravi@example.com",
            phone="+919800000002",
            role=UserRole.SHOP_OWNER,
        )
    )
    shop = await repos.shops.add(
        Shop(
            id="shop-1",
            owner_id=owner.id,
            business_name="Campus Prints",
            location=SHOP_LOCATION,
            address="Gate 2, Main Campus",
        )
    )
    return Seed(student=student, owner=owner, other_student=other, shop=shop)


@pytest_asyncio.fixture
async def seed(repos: Repositories) -> Seed:
    return await seed_repositories(repos)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(event_bus: EventBus) -> list[DomainEvent]:
    """Every event published on ``event_bus``, in order."""
    events: list[DomainEvent] = []

    async def record(event: DomainEvent) -> None:
        events.append(event)

    for event_type in EventType:
        event_bus.subscribe(event_type, record)
    return events


@pytest.fixture
def sample_file() -> FileRef:
    return FileRef(name="notes.pdf", url="https://files.example.com/notes.pdf", pages=10)


def _make_order(
    shop_id: str = "shop-1",
    user_id: str = "student-1",
    created_at: datetime | None = None,
    **overrides,
) -> Order:
    """Build an unsaved PENDING order."""
    created_at = created_at or datetime.now(timezone.utc)
    fields = {
        "id": str(uuid4()),
        "order_number": f"QP-TEST-{uuid4().hex[:6].upper()}",
        "user_id": user_id,
        "shop_id": shop_id,
        "file": FileRef(name="notes.pdf", url="https://files.example.com/notes.pdf"),
        "print_config": PrintConfig(pages=10, copies=2),
        "total_cost": Decimal("44.72"),
        "created_at": created_at,
        "updated_at": created_at,
    }
    fields.update(overrides)
    return Order(**fields)


@pytest.fixture
def order_factory():
    """Factory for unsaved orders; keyword arguments override fields."""
    return _make_order


# ============================================================================
# HTTP API
# ============================================================================


# Monday 08:00 in the pricing time zone: no peak surcharge
QUIET_MORNING = datetime(2024, 1, 8, 8, 0, tzinfo=ZoneInfo("Asia/Kolkata"))


@pytest.fixture
def api_settings(tmp_path: Path) -> Settings:
    """Settings for an API process with no broker."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        rabbitmq_url="",
        token_secret="test-token-secret",
    )


@pytest.fixture
def client(api_settings: Settings) -> Iterator[TestClient]:
    """A running API with the seed data and a fixed pricing clock."""
    app = create_app(api_settings)
    with TestClient(app) as test_client:
        context = app.state.context
        context.pricing.now = MagicMock(return_value=QUIET_MORNING)
        test_client.portal.call(seed_repositories, context.repositories)
        yield test_client


@pytest.fixture
def auth_headers(client: TestClient) -> Callable[[Identity], dict[str, str]]:
    """Build an Authorization header for an identity."""

    def build(identity: Identity) -> dict[str, str]:
        token = client.app.state.context.token_codec.issue(identity)
        return {"Authorization": f"Bearer {token}"}

    return build
