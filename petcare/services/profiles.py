"""Profile record storage in the users collection."""

from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from petcare.models.auth import ProfileRecord, UserRole
from petcare.utils.helpers import utcnow


class ProfileRepository:
    """Remote profile records keyed by identity uid."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.users

    @staticmethod
    def _to_record(doc: dict) -> ProfileRecord:
        doc = dict(doc)
        uid = doc.pop("_id")
        now = utcnow()
        # Documents written before a timestamp existed fall back to now
        for field in ("created_at", "updated_at", "last_login_at"):
            if doc.get(field) is None:
                doc[field] = now
        return ProfileRecord(uid=uid, **doc)

    async def get(self, uid: str) -> ProfileRecord | None:
        """Get the profile record for an identity."""
        doc = await self.collection.find_one({"_id": uid})
        if not doc:
            return None
        return self._to_record(doc)

    async def create(self, uid: str, email: str, display_name: str) -> ProfileRecord:
        """Create a profile with the default role and one creation instant."""
        now = utcnow()
        doc = {
            "_id": uid,
            "email": email,
            "display_name": display_name,
            "role": UserRole.USER.value,
            "created_at": now,
            "updated_at": now,
            "last_login_at": now,
        }
        await self.collection.insert_one(doc)
        return self._to_record(doc)

    async def record_login(self, uid: str, at: datetime | None = None) -> ProfileRecord | None:
        """Stamp last_login_at/updated_at and return the updated record."""
        at = at or utcnow()
        doc = await self.collection.find_one_and_update(
            {"_id": uid},
            {"$set": {"last_login_at": at, "updated_at": at}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._to_record(doc)
