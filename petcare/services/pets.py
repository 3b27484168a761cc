"""Pet service for the signed-in user's pet records."""

import re
import logging
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from petcare.models.pet import Pet, PetCreate, PetUpdate
from petcare.services.session import SessionView
from petcare.utils.helpers import normalize_name, utcnow

logger = logging.getLogger(__name__)

DUPLICATE_NAME = "A pet with this name already exists"


class PetService:
    """Service for managing pets, scoped to the session's identity."""

    def __init__(self, db: AsyncIOMotorDatabase, session: SessionView):
        self.db = db
        self.collection = db.pets
        self.session = session

    def _owner_id(self) -> str:
        """Uid of the authenticated owner; raises PermissionError otherwise."""
        if not self.session.is_authenticated:
            raise PermissionError("User not authenticated")
        return self.session.identity.uid

    @staticmethod
    def _to_pet(doc: dict) -> Pet:
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        doc.pop("name_key", None)
        return Pet(**doc)

    async def _name_taken(self, owner_id: str, name: str, exclude_id: ObjectId | None = None) -> bool:
        query: dict = {"user_id": owner_id, "name_key": normalize_name(name)}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return await self.collection.find_one(query, {"_id": 1}) is not None

    async def _get_owned(self, pet_id: str, owner_id: str) -> dict | None:
        if not ObjectId.is_valid(pet_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(pet_id)})
        if doc is None:
            return None
        if doc.get("user_id") != owner_id:
            raise PermissionError("Unauthorized")
        return doc

    async def list_pets(self) -> list[Pet]:
        """List the owner's pets, oldest first."""
        owner_id = self._owner_id()
        cursor = self.collection.find({"user_id": owner_id}).sort([("created_at", 1), ("_id", 1)])
        return [self._to_pet(doc) async for doc in cursor]

    async def search_pets(self, query: str) -> list[Pet]:
        """Case-insensitive substring search over name and description."""
        owner_id = self._owner_id()
        pattern = {"$regex": re.escape(query.strip()), "$options": "i"}
        cursor = self.collection.find({
            "user_id": owner_id,
            "$or": [{"name": pattern}, {"description": pattern}],
        }).sort([("created_at", 1), ("_id", 1)])
        return [self._to_pet(doc) async for doc in cursor]

    async def get_pet(self, pet_id: str) -> Pet | None:
        """Get one of the owner's pets."""
        doc = await self._get_owned(pet_id, self._owner_id())
        return self._to_pet(doc) if doc else None

    async def add_pet(self, pet_data: PetCreate) -> Pet:
        """Add a pet; names are unique per owner."""
        owner_id = self._owner_id()
        if await self._name_taken(owner_id, pet_data.name):
            raise ValueError(DUPLICATE_NAME)

        now = utcnow()
        pet_doc = {
            **pet_data.model_dump(),
            "name_key": normalize_name(pet_data.name),
            "user_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(pet_doc)
        except DuplicateKeyError:
            raise ValueError(DUPLICATE_NAME)
        pet_doc["_id"] = result.inserted_id
        logger.info(f"Added pet {result.inserted_id} for {owner_id}")
        return self._to_pet(pet_doc)

    async def update_pet(self, pet_id: str, pet_update: PetUpdate) -> Pet | None:
        """Update one of the owner's pets."""
        owner_id = self._owner_id()
        doc = await self._get_owned(pet_id, owner_id)
        if doc is None:
            return None

        update_data = pet_update.model_dump(exclude_unset=True)
        if update_data.get("name") is None:
            update_data.pop("name", None)
        if update_data.get("age") is None:
            update_data.pop("age", None)
        if not update_data:
            return self._to_pet(doc)

        if "name" in update_data:
            if await self._name_taken(owner_id, update_data["name"], exclude_id=doc["_id"]):
                raise ValueError(DUPLICATE_NAME)
            update_data["name_key"] = normalize_name(update_data["name"])
        update_data["updated_at"] = utcnow()

        try:
            result = await self.collection.find_one_and_update(
                {"_id": doc["_id"], "user_id": owner_id},
                {"$set": update_data},
                return_document=True,
            )
        except DuplicateKeyError:
            raise ValueError(DUPLICATE_NAME)
        return self._to_pet(result) if result else None

    async def delete_pet(self, pet_id: str) -> bool:
        """Delete one of the owner's pets."""
        owner_id = self._owner_id()
        doc = await self._get_owned(pet_id, owner_id)
        if doc is None:
            return False
        result = await self.collection.delete_one({"_id": doc["_id"], "user_id": owner_id})
        return result.deleted_count > 0
