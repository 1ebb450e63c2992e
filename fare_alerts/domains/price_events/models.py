"""
Price event models.

A price event is one inbound message describing a flight's current price,
route and currency. Events travel on the queue as flat camelCase JSON.
"""

from datetime import datetime
from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class PriceEvent(BaseModel):
    """Immutable flight price observation"""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    flight_id: str = Field(..., min_length=1, description="Upstream flight identifier")
    airline: str = Field(..., description="Operating airline")
    origin: str = Field(..., description="Departure city")
    destination: str = Field(..., description="Arrival city, matched exactly")
    price: Decimal = Field(..., ge=0, description="Current price")
    currency: str = Field(..., min_length=1, description="Currency code, matched exactly")
    departure_date: datetime = Field(..., description="Scheduled departure")

    @field_serializer("price", when_used="json")
    def serialize_price(self, price: Decimal) -> Union[int, float]:
        # Queue payloads carry price as a JSON number
        if price == price.to_integral_value():
            return int(price)
        return float(price)

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_payload(cls, payload: Union[str, bytes]) -> "PriceEvent":
        return cls.model_validate_json(payload)
