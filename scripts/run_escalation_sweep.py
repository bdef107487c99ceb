import asyncio
import logging
from expense_approval.database import db
from expense_approval.services.notifications import outbox_relay
from expense_approval.workflow.escalation import escalation_monitor

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def run_escalation_sweep():
    """
    Single escalation pass, for cron-style scheduling instead of the in-process loop.
    """
    logger.info("Starting escalation sweep...")
    db.connect()
    try:
        escalated = await escalation_monitor.sweep()
        delivered = await outbox_relay.drain()
        logger.info(f"Escalation sweep complete: {escalated} expenses escalated, {delivered} notifications delivered.")
    finally:
        db.close()

if __name__ == "__main__":
    asyncio.run(run_escalation_sweep())
