import logging

from expense_approval.database import db

logger = logging.getLogger(__name__)

class CurrencyConverter:
    """
    Converts expense amounts into a policy level's threshold currency
    using the latest stored exchange rate.
    """

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        source = (from_currency or "").upper()
        target = (to_currency or "").upper()
        if not source or not target or source == target:
            return float(amount)

        rate = await db.exchange_rates.get_latest(source, target)
        if rate:
            return float(amount) * rate.rate

        # Stored pairs are usually one-directional
        inverse = await db.exchange_rates.get_latest(target, source)
        if inverse:
            return float(amount) / inverse.rate

        logger.warning(f"No exchange rate {source}->{target}; comparing unconverted amount {amount}")
        return float(amount)

currency_converter = CurrencyConverter()
