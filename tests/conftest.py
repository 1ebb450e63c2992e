"""
Pytest configuration and shared fixtures.

Provides in-memory doubles for the queue, the preference store and the
delivery gateway, plus sample users and events.
"""

import os
import uuid
from collections import defaultdict, deque
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

# Configure test environment before importing fare_alerts modules
os.environ.setdefault('LOG_JSON', 'false')
os.environ.setdefault('POLL_INTERVAL_SECONDS', '0.01')
os.environ.setdefault('DELIVERY_BACKEND', 'inline')

from fare_alerts.domains.price_events.models import PriceEvent
from fare_alerts.domains.users.models import AlertPreference, User
from fare_alerts.shared.exceptions import DuplicatePreferenceError
from fare_alerts.shared.interfaces import DeliveryGateway, PreferenceStore, PriceEventQueue


class FakeRedisList:
    """Just enough of redis.asyncio.Redis for list-backed queues"""

    def __init__(self):
        self.lists: Dict[str, deque] = defaultdict(deque)

    async def rpush(self, name, *values):
        self.lists[name].extend(values)
        return len(self.lists[name])

    async def lpop(self, name):
        if not self.lists[name]:
            return None
        return self.lists[name].popleft()

    async def llen(self, name):
        return len(self.lists[name])


class InMemoryPriceEventQueue(PriceEventQueue):
    """FIFO queue; items may be events or exceptions to raise on consume"""

    def __init__(self, items=None):
        self.items = deque(items or [])
        self.consume_calls = 0

    async def publish(self, event: PriceEvent) -> None:
        self.items.append(event)

    async def try_consume(self, cancel_event) -> Optional[PriceEvent]:
        self.consume_calls += 1
        if cancel_event.is_set() or not self.items:
            return None
        item = self.items.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    async def queue_depth(self, queue_name: Optional[str] = None) -> int:
        return len(self.items)


class InMemoryPreferenceStore(PreferenceStore):
    """Dictionary-backed store with the same not-found and duplicate rules"""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.retired: Dict[str, set] = defaultdict(set)
        self.list_error: Optional[Exception] = None

    async def create_user(self, user: User) -> User:
        user_id = uuid.uuid4().hex
        preferences = [
            p if p.preference_id else p.model_copy(update={"preference_id": uuid.uuid4().hex})
            for p in user.alert_preferences
        ]
        stored = user.model_copy(update={"id": user_id, "alert_preferences": preferences})
        self.users[user_id] = stored
        return stored

    async def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def delete_user(self, user_id: str) -> Optional[User]:
        return self.users.pop(user_id, None)

    async def add_preference(self, user_id, preference):
        user = self.users.get(user_id)
        if user is None:
            return None
        pid = preference.preference_id or uuid.uuid4().hex
        if user.find_preference(pid) or pid in self.retired[user_id]:
            raise DuplicatePreferenceError(user_id, pid)
        preference = preference.model_copy(update={"preference_id": pid})
        user = user.model_copy(update={"alert_preferences": user.alert_preferences + [preference]})
        self.users[user_id] = user
        return user

    async def update_preference(self, user_id, preference_id, new_value):
        user = self.users.get(user_id)
        if user is None or user.find_preference(preference_id) is None:
            return None
        replacement = new_value.model_copy(update={"preference_id": new_value.preference_id or preference_id})
        preferences = [replacement if p.preference_id == preference_id else p for p in user.alert_preferences]
        user = user.model_copy(update={"alert_preferences": preferences})
        self.users[user_id] = user
        return user

    async def remove_preference(self, user_id, preference_id):
        user = self.users.get(user_id)
        if user is None or user.find_preference(preference_id) is None:
            return None
        preferences = [p for p in user.alert_preferences if p.preference_id != preference_id]
        self.retired[user_id].add(preference_id)
        user = user.model_copy(update={"alert_preferences": preferences})
        self.users[user_id] = user
        return user

    async def list_users(self) -> List[User]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.users.values())


class RecordingGateway(DeliveryGateway):
    """Collects every alert; optionally fails for messages containing a marker"""

    def __init__(self, fail_on: Optional[str] = None):
        self.messages: List[str] = []
        self.fail_on = fail_on

    async def send_alert(self, message: str) -> None:
        if self.fail_on and self.fail_on in message:
            raise ConnectionError("push endpoint unavailable")
        self.messages.append(message)

    def messages_for(self, name: str) -> List[str]:
        return [m for m in self.messages if m.startswith(f"Hi {name},")]


def make_event(destination: str, price, currency: str = "USD", **overrides) -> PriceEvent:
    data = {
        "flight_id": f"FL-{destination[:3].upper()}-{price}",
        "airline": "Swiss",
        "origin": "New York",
        "destination": destination,
        "price": Decimal(str(price)),
        "currency": currency,
        "departure_date": datetime(2025, 6, 1, 9, 30, 15, 123456),
    }
    data.update(overrides)
    return PriceEvent(**data)


def make_preference(destination: str, max_price, currency: str = "USD", preference_id: Optional[str] = None) -> AlertPreference:
    return AlertPreference(
        preference_id=preference_id,
        destination=destination,
        max_price=Decimal(str(max_price)),
        currency=currency,
    )


@pytest.fixture
def fake_redis():
    return FakeRedisList()


@pytest.fixture
def memory_queue():
    return InMemoryPriceEventQueue()


@pytest.fixture
def memory_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def recording_gateway():
    return RecordingGateway()


@pytest.fixture
def sample_event():
    """Sample price event"""
    return make_event("Paris", 600)


@pytest.fixture
def sample_user():
    """Sample user with two preferences"""
    return User(
        id="64b7f0c2a1b2c3d4e5f60718",
        name="Alice",
        email="alice@example.com",
        mobile_device_token="device-token-1",
        alert_preferences=[
            make_preference("Paris", 1000, preference_id="p-paris"),
            make_preference("Rome", 700, preference_id="p-rome"),
        ],
    )


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def preference_factory():
    return make_preference


@pytest.fixture
def gateway_factory():
    return RecordingGateway
