from typing import Any, Dict, Iterable, List, Optional

from pymongo import ReturnDocument

from doorstep.models.base import bson_value
from doorstep.models.customer import Customer, CustomerStatus, Subscription
from doorstep.repositories.base import BaseRepository, to_object_id, utcnow


class CustomerRepository(BaseRepository[Customer]):
    """Customer database operations."""

    collection_name = "customers"
    model = Customer

    async def create_customer(self, customer: Customer) -> Customer:
        return await self._insert(customer)

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return await self.get_by_id(customer_id)

    async def update_customer(
        self,
        customer_id: str,
        fields: Dict[str, Any],
        expected_statuses: Optional[Iterable[CustomerStatus]] = None,
    ) -> Optional[Customer]:
        """
        Update a customer, optionally only if its status is one of
        `expected_statuses`. Returns None when nothing matched.
        """
        oid = to_object_id(customer_id)
        if oid is None:
            return None
        query: Dict[str, Any] = {"_id": oid}
        if expected_statuses is not None:
            query["status"] = {"$in": [s.value for s in expected_statuses]}

        updates = {k: bson_value(v) for k, v in fields.items()}
        updates["updated_at"] = utcnow()
        doc = await self.collection.find_one_and_update(
            query,
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def list_by_delivery_person(
        self, delivery_person_id: str, status: Optional[CustomerStatus] = None
    ) -> List[Customer]:
        query: Dict[str, Any] = {"delivery_person_id": delivery_person_id}
        if status is not None:
            query["status"] = status.value
        return await self._find_many(query, sort=[("_id", 1)])

    async def list_by_status(self, status: CustomerStatus) -> List[Customer]:
        return await self._find_many({"status": status.value}, sort=[("_id", 1)])

    async def list_by_ids(self, customer_ids: Iterable[str]) -> List[Customer]:
        oids = [oid for oid in (to_object_id(c) for c in customer_ids) if oid is not None]
        if not oids:
            return []
        return await self._find_many({"_id": {"$in": oids}})

    async def assigned_delivery_person_ids(self) -> List[str]:
        """Delivery persons with at least one active customer."""
        customers = await self._find_many(
            {"status": CustomerStatus.ACTIVE.value, "delivery_person_id": {"$ne": None}}
        )
        return sorted({c.delivery_person_id for c in customers if c.delivery_person_id})


class SubscriptionRepository(BaseRepository[Subscription]):
    """Standing daily orders, one per customer."""

    collection_name = "subscriptions"
    model = Subscription

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        return await self._insert(subscription)

    async def get_by_customer(self, customer_id: str) -> Optional[Subscription]:
        return await self._find_one({"customer_id": customer_id})

    async def update_subscription(self, customer_id: str, fields: Dict[str, Any]) -> Optional[Subscription]:
        updates = {k: bson_value(v) for k, v in fields.items()}
        updates["updated_at"] = utcnow()
        doc = await self.collection.find_one_and_update(
            {"customer_id": customer_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def increment_delivery_count(self, customer_id: str) -> Optional[Subscription]:
        doc = await self.collection.find_one_and_update(
            {"customer_id": customer_id},
            {"$inc": {"delivery_count": 1}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)
