"""
Transport interface definitions.

Abstract contracts for the queue, the preference store and the delivery
gateway. The matching engine depends only on these.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from ...domains.price_events.models import PriceEvent
from ...domains.users.models import AlertPreference, User


class PriceEventQueue(ABC):
    """
    Durable queue of price events.

    Consuming an event removes it; there is no separate acknowledgement.
    """

    @abstractmethod
    async def publish(self, event: PriceEvent) -> None:
        """Enqueue one event. Raises TransientTransportError on failure."""

    @abstractmethod
    async def try_consume(self, cancel_event: asyncio.Event) -> Optional[PriceEvent]:
        """Remove and return one event, or None when the queue is empty."""

    @abstractmethod
    async def queue_depth(self, queue_name: Optional[str] = None) -> int:
        """Approximate number of pending events."""


class PreferenceStore(ABC):
    """
    Persistence of users and their embedded alert preferences.

    Preference mutations are single atomic updates of one user document.
    """

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """Persist a new user and return it with its assigned id."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Get user by id."""

    @abstractmethod
    async def delete_user(self, user_id: str) -> Optional[User]:
        """Delete user and return the deleted snapshot."""

    @abstractmethod
    async def add_preference(self, user_id: str, preference: AlertPreference) -> Optional[User]:
        """Append one preference and return the updated user."""

    @abstractmethod
    async def update_preference(
        self,
        user_id: str,
        preference_id: str,
        new_value: AlertPreference
    ) -> Optional[User]:
        """Replace the preference with the given id and return the updated user."""

    @abstractmethod
    async def remove_preference(self, user_id: str, preference_id: str) -> Optional[User]:
        """Remove the preference with the given id and return the updated user."""

    @abstractmethod
    async def list_users(self) -> List[User]:
        """Snapshot of the whole user population."""

    async def iter_users(self) -> AsyncIterator[User]:
        """
        Lazy iteration over the user population.

        Default implementation walks list_users().
        """
        for user in await self.list_users():
            yield user


class DeliveryGateway(ABC):
    """Hands a formatted alert to a device push mechanism"""

    @abstractmethod
    async def send_alert(self, message: str) -> None:
        """Send one alert message."""
