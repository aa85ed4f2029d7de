from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument

from doorstep.models.billing import MonthlyPayment, PaymentStatus
from doorstep.repositories.base import BaseRepository, utcnow


class MonthlyPaymentRepository(BaseRepository[MonthlyPayment]):
    """One MonthlyPayment per (customer, year, month)."""

    collection_name = "monthly_payments"
    model = MonthlyPayment

    def _key(self, customer_id: str, year: int, month: int) -> dict:
        return {"customer_id": customer_id, "year": year, "month": month}

    async def get_payment(self, customer_id: str, year: int, month: int) -> Optional[MonthlyPayment]:
        return await self._find_one(self._key(customer_id, year, month))

    async def get_or_create(
        self, customer_id: str, year: int, month: int, daily_rate: int, total_cost: int
    ) -> MonthlyPayment:
        now = utcnow()
        doc = await self.collection.find_one_and_update(
            self._key(customer_id, year, month),
            {"$setOnInsert": {
                "daily_rate": daily_rate,
                "total_cost": total_cost,
                "status": PaymentStatus.PENDING.value,
                "created_at": now,
                "updated_at": now,
            }},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def update_total(
        self, customer_id: str, year: int, month: int, daily_rate: int, total_cost: int
    ) -> Optional[MonthlyPayment]:
        doc = await self.collection.find_one_and_update(
            self._key(customer_id, year, month),
            {"$set": {"daily_rate": daily_rate, "total_cost": total_cost, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)

    async def mark_paid(self, customer_id: str, year: int, month: int, paid_at: datetime) -> Optional[MonthlyPayment]:
        doc = await self.collection.find_one_and_update(
            dict(self._key(customer_id, year, month), status=PaymentStatus.PENDING.value),
            {"$set": {"status": PaymentStatus.PAID.value, "paid_at": paid_at, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            **self._opts
        )
        return self._load(doc)
