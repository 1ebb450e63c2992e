"""
User repository for MongoDB data access.

Users are stored one document per user with their alert preferences embedded.
Every preference mutation is a single find_one_and_update against the nested
array, so concurrent edits on the same user never overwrite each other.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from bson import Decimal128, ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, WriteError

from ...core.config import settings
from ...shared.exceptions import DuplicatePreferenceError, NotPersistedError, TransientTransportError
from ...shared.interfaces import PreferenceStore
from .models import AlertPreference, User

logger = logging.getLogger(__name__)

PREFERENCES_FIELD = "alert_preferences"
RETIRED_FIELD = "retired_preference_ids"


class MongoPreferenceStore(PreferenceStore):
    """Repository for users and their embedded alert preferences"""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: Optional[str] = None):
        self.db = db
        self.collection: AsyncIOMotorCollection = db[collection_name or settings.users_collection]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [(f"{PREFERENCES_FIELD}.destination", ASCENDING), (f"{PREFERENCES_FIELD}.currency", ASCENDING)]
        )

    # ===== Document mapping =====

    @staticmethod
    def _object_id(user_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(user_id)
        except (InvalidId, TypeError):
            return None

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _preference_to_document(preference: AlertPreference) -> Dict[str, Any]:
        return {
            "preference_id": preference.preference_id,
            "destination": preference.destination,
            "max_price": Decimal128(preference.max_price),
            "currency": preference.currency,
        }

    @staticmethod
    def _document_to_user(doc: Dict[str, Any]) -> User:
        """Convert a stored document to the User model"""
        preferences = []
        for entry in doc.get(PREFERENCES_FIELD) or []:
            max_price = entry.get("max_price")
            if isinstance(max_price, Decimal128):
                max_price = max_price.to_decimal()
            preferences.append(AlertPreference(
                preference_id=entry.get("preference_id"),
                destination=entry["destination"],
                max_price=max_price,
                currency=entry["currency"],
            ))

        data = {
            "id": str(doc["_id"]),
            "name": doc["name"],
            "email": doc["email"],
            "mobile_device_token": doc.get("mobile_device_token"),
            "alert_preferences": preferences,
        }
        for timestamp in ("created_at", "updated_at"):
            if doc.get(timestamp) is not None:
                data[timestamp] = doc[timestamp]
        return User(**data)

    @staticmethod
    def _with_id(preference: AlertPreference) -> AlertPreference:
        if preference.preference_id:
            return preference
        return preference.model_copy(update={"preference_id": str(uuid.uuid4())})

    # ===== Users =====

    async def create_user(self, user: User) -> User:
        now = self._now()
        preferences = [self._with_id(p) for p in user.alert_preferences]
        document = {
            "name": user.name,
            "email": user.email,
            "mobile_device_token": user.mobile_device_token,
            PREFERENCES_FIELD: [self._preference_to_document(p) for p in preferences],
            RETIRED_FIELD: [],
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.collection.insert_one(document)
        except ConnectionFailure as e:
            raise TransientTransportError(f"User insert failed: {e}", transport="mongodb") from e
        except (DuplicateKeyError, WriteError) as e:
            logger.error(f"User insert rejected: {e}")
            raise NotPersistedError(f"User insert rejected: {e}") from e

        if not result.acknowledged or result.inserted_id is None:
            raise NotPersistedError("User insert was not acknowledged")

        document["_id"] = result.inserted_id
        logger.info("Created user", extra={"user_id": str(result.inserted_id)})
        return self._document_to_user(document)

    async def get_user(self, user_id: str) -> Optional[User]:
        oid = self._object_id(user_id)
        if oid is None:
            return None
        try:
            doc = await self.collection.find_one({"_id": oid})
        except ConnectionFailure as e:
            raise TransientTransportError(f"User lookup failed: {e}", transport="mongodb") from e
        return self._document_to_user(doc) if doc else None

    async def delete_user(self, user_id: str) -> Optional[User]:
        oid = self._object_id(user_id)
        if oid is None:
            return None
        try:
            doc = await self.collection.find_one_and_delete({"_id": oid})
        except ConnectionFailure as e:
            raise TransientTransportError(f"User delete failed: {e}", transport="mongodb") from e
        if doc is None:
            return None
        logger.info("Deleted user", extra={"user_id": user_id})
        return self._document_to_user(doc)

    async def list_users(self) -> List[User]:
        return [user async for user in self.iter_users()]

    async def iter_users(self) -> AsyncIterator[User]:
        try:
            async for doc in self.collection.find({}):
                yield self._document_to_user(doc)
        except ConnectionFailure as e:
            raise TransientTransportError(f"User scan failed: {e}", transport="mongodb") from e

    # ===== Preferences =====

    async def add_preference(self, user_id: str, preference: AlertPreference) -> Optional[User]:
        oid = self._object_id(user_id)
        if oid is None:
            return None

        preference = self._with_id(preference)
        pid = preference.preference_id
        doc = await self._find_one_and_update(
            {
                "_id": oid,
                f"{PREFERENCES_FIELD}.preference_id": {"$ne": pid},
                RETIRED_FIELD: {"$ne": pid},
            },
            {
                "$push": {PREFERENCES_FIELD: self._preference_to_document(preference)},
                "$set": {"updated_at": self._now()},
            },
        )
        if doc is not None:
            return self._document_to_user(doc)

        if await self._user_exists(oid):
            raise DuplicatePreferenceError(user_id, pid)
        return None

    async def update_preference(
        self,
        user_id: str,
        preference_id: str,
        new_value: AlertPreference
    ) -> Optional[User]:
        oid = self._object_id(user_id)
        if oid is None:
            return None

        new_id = new_value.preference_id or preference_id
        replacement = new_value.model_copy(update={"preference_id": new_id})

        query: Dict[str, Any] = {"_id": oid, f"{PREFERENCES_FIELD}.preference_id": preference_id}
        if new_id != preference_id:
            query = {
                "_id": oid,
                "$and": [
                    {f"{PREFERENCES_FIELD}.preference_id": preference_id},
                    {f"{PREFERENCES_FIELD}.preference_id": {"$ne": new_id}},
                    {RETIRED_FIELD: {"$ne": new_id}},
                ],
            }

        doc = await self._find_one_and_update(
            query,
            {
                "$set": {
                    f"{PREFERENCES_FIELD}.$[target]": self._preference_to_document(replacement),
                    "updated_at": self._now(),
                },
            },
            array_filters=[{"target.preference_id": preference_id}],
        )
        if doc is not None:
            return self._document_to_user(doc)

        if new_id != preference_id and await self._user_exists(oid, preference_id):
            raise DuplicatePreferenceError(user_id, new_id)
        return None

    async def remove_preference(self, user_id: str, preference_id: str) -> Optional[User]:
        oid = self._object_id(user_id)
        if oid is None:
            return None

        doc = await self._find_one_and_update(
            {"_id": oid, f"{PREFERENCES_FIELD}.preference_id": preference_id},
            {
                "$pull": {PREFERENCES_FIELD: {"preference_id": preference_id}},
                "$addToSet": {RETIRED_FIELD: preference_id},
                "$set": {"updated_at": self._now()},
            },
        )
        return self._document_to_user(doc) if doc else None

    # ===== Helpers =====

    async def _find_one_and_update(self, query: Dict[str, Any], update: Dict[str, Any], **kwargs) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one_and_update(
                query,
                update,
                return_document=ReturnDocument.AFTER,
                **kwargs
            )
        except ConnectionFailure as e:
            raise TransientTransportError(f"Preference update failed: {e}", transport="mongodb") from e
        except WriteError as e:
            logger.error(f"Preference update rejected: {e}")
            raise NotPersistedError(f"Preference update rejected: {e}") from e

    async def _user_exists(self, oid: ObjectId, preference_id: Optional[str] = None) -> bool:
        query: Dict[str, Any] = {"_id": oid}
        if preference_id is not None:
            query[f"{PREFERENCES_FIELD}.preference_id"] = preference_id
        try:
            return await self.collection.find_one(query, projection={"_id": 1}) is not None
        except ConnectionFailure as e:
            raise TransientTransportError(f"User lookup failed: {e}", transport="mongodb") from e
