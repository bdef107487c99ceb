from typing import Optional
from expense_approval.models.notification import ExchangeRate
from expense_approval.repositories.base import BaseRepository

class ExchangeRateRepository(BaseRepository[ExchangeRate]):
    async def get_latest(self, base_currency: str, target_currency: str) -> Optional[ExchangeRate]:
        """Most recent rate for a currency pair."""
        cursor = self.collection.find(
            {"base_currency": base_currency, "target_currency": target_currency}
        ).sort("effective_date", -1).limit(1)
        docs = await cursor.to_list(length=1)
        return self.model_cls.from_mongo(docs[0]) if docs else None
