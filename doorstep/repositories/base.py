from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from doorstep.models.base import Document

ModelT = TypeVar("ModelT", bound=Document)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class BaseRepository(Generic[ModelT]):
    """
    Collection access bound to an optional client session.

    Repositories built with the session of an atomic unit take part in its
    transaction; built without one they write directly.
    """

    collection_name: str
    model: Type[ModelT]

    def __init__(self, db: AsyncIOMotorDatabase, session: Optional[AsyncIOMotorClientSession] = None):
        self.db = db
        self.collection = db[self.collection_name]
        self.session = session

    @property
    def _opts(self) -> Dict[str, Any]:
        return {"session": self.session} if self.session is not None else {}

    def _load(self, doc: Optional[dict]) -> Optional[ModelT]:
        if not doc:
            return None
        doc["_id"] = str(doc["_id"])
        return self.model(**doc)

    async def _find_one(self, query: dict) -> Optional[ModelT]:
        doc = await self.collection.find_one(query, **self._opts)
        return self._load(doc)

    async def _find_many(self, query: dict, sort: Optional[list] = None) -> List[ModelT]:
        options = dict(self._opts)
        if sort:
            options["sort"] = sort
        docs = await self.collection.find(query, **options).to_list(None)
        return [self._load(doc) for doc in docs]

    async def _insert(self, model: ModelT) -> ModelT:
        doc = model.to_document()
        result = await self.collection.insert_one(doc, **self._opts)
        model.id = str(result.inserted_id)
        return model

    async def get_by_id(self, doc_id: str) -> Optional[ModelT]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})
