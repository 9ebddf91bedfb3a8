import os
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# Ensure required environment variables are present before settings import
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CRON_SECRET", "cron-secret")
os.environ.setdefault("EMAIL_GATEWAY_URL", "http://email-gateway.test/send")

# Add the backend directory so `app` package imports resolve during tests
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.append(str(BACKEND_DIR))

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.deps import Identity  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.models import Base, Campaign, CampaignApplication, User  # noqa: E402
from app.services.email_gateway import EmailDeliveryError, EmailTemplate  # noqa: E402
from app.services.notifications import NotificationDispatcher  # noqa: E402

REEL_REQUIREMENT = {
    "id": "r1",
    "socialChannel": "Instagram",
    "contentType": "Reel",
    "quantity": 2,
    "description": "Two reels featuring the resort pool",
}


class FakeEmailGateway:
    """Records sends instead of calling the network; can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    async def send(
        self, to: str, template: EmailTemplate, subject: str, data: dict[str, Any]
    ) -> Optional[str]:
        if self.fail:
            raise EmailDeliveryError("gateway unavailable")
        self.sent.append({"to": to, "template": template.value, "subject": subject, "data": data})
        return f"msg-{len(self.sent)}"

    def templates_for(self, to: str) -> list[str]:
        return [item["template"] for item in self.sent if item["to"] == to]


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    async def publish(self, events) -> None:
        self.events.extend(events)

    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


def identity_for(user: User) -> Identity:
    return Identity(user_id=user.id, role=user.role, email=user.email, display_name=user.name)


def auth_headers(identity: Identity) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity.user_id, identity.role)}"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_gateway():
    return FakeEmailGateway()


@pytest.fixture
def dispatcher(session_factory, email_gateway):
    return NotificationDispatcher(session_factory, email_gateway)


@pytest.fixture
def recorder():
    return RecordingNotifier()


@pytest.fixture
async def world(session):
    """A brand with one active campaign and three creators, committed.

    Returns plain identities and ids so tests never touch ORM state that a
    rolled-back ledger transaction may have expired.
    """

    brand = User(
        role="brand",
        email="brand@example.com",
        first_name="Bea",
        last_name="Brand",
        company_name="Sunny Resorts",
    )
    alice = User(role="creator", email="alice@example.com", display_name="Alice")
    bob = User(role="creator", email="bob@example.com", display_name="Bob")
    carol = User(role="creator", email=None, display_name="Carol")
    session.add_all([brand, alice, bob, carol])
    await session.flush()

    campaign = Campaign(
        brand_id=brand.id,
        title="Summer Escape",
        status="active",
        content_items=[dict(REEL_REQUIREMENT)],
        budget_type="paid",
    )
    session.add(campaign)
    await session.commit()

    return {
        "brand": identity_for(brand),
        "alice": identity_for(alice),
        "bob": identity_for(bob),
        "carol": identity_for(carol),
        "campaign_id": campaign.id,
    }


async def accept(session, campaign_id: str, creator_id: str) -> str:
    """Insert an already-accepted application directly."""

    application = CampaignApplication(
        campaign_id=campaign_id, creator_id=creator_id, message="hi", status="accepted"
    )
    session.add(application)
    await session.commit()
    return application.id


@pytest.fixture
async def client(session_factory, dispatcher):
    from app.api.deps import get_dispatcher
    from app.core.db import get_session
    from app.core.rate_limit import limiter
    from app.main import app

    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    limiter.reset()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
