"""
User domain models.

A user is the aggregate root owning an embedded list of alert preferences.
Only the preference store mutates it.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, EmailStr, field_validator


class AlertPreference(BaseModel):
    """A user's standing criterion for being notified"""
    preference_id: Optional[str] = Field(None, description="Unique within the owning user")
    destination: str = Field(..., min_length=1, description="Destination, matched exactly")
    max_price: Decimal = Field(..., ge=0, description="Inclusive price ceiling")
    currency: str = Field(..., min_length=1, description="Currency code, matched exactly")


class User(BaseModel):
    """User aggregate with embedded alert preferences"""
    id: Optional[str] = Field(None, description="Assigned by the store on creation")
    name: str = Field(..., min_length=1, description="Display name used in alerts")
    email: EmailStr = Field(..., description="Contact address")
    mobile_device_token: Optional[str] = Field(None, description="Push device token")
    alert_preferences: List[AlertPreference] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True

    @field_validator('alert_preferences')
    def validate_unique_preference_ids(cls, v):
        """Preference ids must not repeat within one user"""
        seen = set()
        for preference in v:
            if preference.preference_id is None:
                continue
            if preference.preference_id in seen:
                raise ValueError(f"Duplicate preference id: {preference.preference_id}")
            seen.add(preference.preference_id)
        return v

    def find_preference(self, preference_id: str) -> Optional[AlertPreference]:
        for preference in self.alert_preferences:
            if preference.preference_id == preference_id:
                return preference
        return None
