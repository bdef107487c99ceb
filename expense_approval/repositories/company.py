from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClientSession
from expense_approval.models.company import Company
from expense_approval.repositories.base import BaseRepository

class CompanyRepository(BaseRepository[Company]):
    async def get_by_company_id(self, company_id: str,
                                session: Optional[AsyncIOMotorClientSession] = None) -> Optional[Company]:
        doc = await self.collection.find_one({"company_id": company_id}, session=session)
        return self.model_cls.from_mongo(doc) if doc else None
