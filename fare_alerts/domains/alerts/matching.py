"""
Matching rules between alert preferences and price events.

Everything here is pure: no I/O and no hidden state.
"""

from typing import Iterable, Iterator, Tuple

from ..price_events.models import PriceEvent
from ..users.models import AlertPreference, User

ALERT_TEMPLATE = (
    "Hi {name}, the flight '{airline}' from {origin} to {destination} "
    "is now available for {price} {currency}."
)


def matches(preference: AlertPreference, event: PriceEvent) -> bool:
    """Destination and currency equal exactly, price at or below the ceiling"""
    return (
        preference.destination == event.destination
        and preference.currency == event.currency
        and event.price <= preference.max_price
    )


def format_alert(user: User, event: PriceEvent) -> str:
    return ALERT_TEMPLATE.format(
        name=user.name,
        airline=event.airline,
        origin=event.origin,
        destination=event.destination,
        price=event.price,
        currency=event.currency,
    )


def find_matches(users: Iterable[User], event: PriceEvent) -> Iterator[Tuple[User, AlertPreference]]:
    """
    Yield every (user, preference) pair satisfied by the event.

    Pairs are evaluated independently; a user with several satisfied
    preferences appears once per preference.
    """
    for user in users:
        for preference in user.alert_preferences:
            if matches(preference, event):
                yield user, preference
