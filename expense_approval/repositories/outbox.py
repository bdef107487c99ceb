from datetime import datetime
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorClientSession
from expense_approval.models.notification import OutboxEvent, OutboxStatus
from expense_approval.repositories.base import BaseRepository

class OutboxRepository(BaseRepository[OutboxEvent]):

    async def enqueue(self, event: OutboxEvent, session: Optional[AsyncIOMotorClientSession] = None) -> OutboxEvent:
        return await self.create(event, session=session)

    async def list_undelivered(self, max_attempts: int = 5, limit: int = 100) -> List[OutboxEvent]:
        """Pending or previously failed events still worth another try."""
        filter = {
            "status": {"$in": [OutboxStatus.PENDING.value, OutboxStatus.FAILED.value]},
            "attempts": {"$lt": max_attempts}
        }
        cursor = self.collection.find(filter).sort("created_at", 1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [self.model_cls.from_mongo(doc) for doc in docs]

    async def mark_dispatched(self, event_id: str):
        await self.collection.update_one(
            {"event_id": event_id},
            {
                "$set": {"status": OutboxStatus.DISPATCHED.value, "dispatched_at": datetime.utcnow()},
                "$inc": {"attempts": 1}
            }
        )

    async def mark_failed(self, event_id: str, error: str):
        await self.collection.update_one(
            {"event_id": event_id},
            {
                "$set": {"status": OutboxStatus.FAILED.value, "last_error": error},
                "$inc": {"attempts": 1}
            }
        )
