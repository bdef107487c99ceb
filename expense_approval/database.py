import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo.errors import PyMongoError

from expense_approval.config import settings
from expense_approval.errors import CommitOutcomeUnknownError, ConflictError
from expense_approval.repositories.expense import ExpenseRepository
from expense_approval.repositories.company import CompanyRepository
from expense_approval.repositories.audit import AuditRecorder
from expense_approval.repositories.outbox import OutboxRepository
from expense_approval.repositories.exchange_rate import ExchangeRateRepository
from expense_approval.models.expense import Expense
from expense_approval.models.company import Company
from expense_approval.models.audit import AuditEntry
from expense_approval.models.notification import OutboxEvent, ExchangeRate

logger = logging.getLogger(__name__)

# Labels MongoDB attaches to errors that are safe to retry from the top
RETRYABLE_LABELS = ("TransientTransactionError",)

# The driver already retried the commit once; the write may have landed
UNKNOWN_COMMIT_LABEL = "UnknownTransactionCommitResult"

class Database:
    client: AsyncIOMotorClient = None

    # Repositories
    expenses: ExpenseRepository = None
    companies: CompanyRepository = None
    audit: AuditRecorder = None
    outbox: OutboxRepository = None
    exchange_rates: ExchangeRateRepository = None

    def connect(self):
        """Initialize database connection and repositories."""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=False)
        db = self.client[settings.DB_NAME]

        self.expenses = ExpenseRepository(db.expenses, Expense)
        self.companies = CompanyRepository(db.companies, Company)
        self.audit = AuditRecorder(db.approval_logs, AuditEntry)
        self.outbox = OutboxRepository(db.notification_outbox, OutboxEvent)
        self.exchange_rates = ExchangeRateRepository(db.exchange_rates, ExchangeRate)

        logger.info(f"Connected to MongoDB database '{settings.DB_NAME}'")

    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncIOMotorClientSession]:
        """
        Multi-document transaction scoped to one unit of work.
        Commits on clean exit, aborts on any exception.
        Retryable write conflicts surface as ConflictError. An ambiguous
        commit surfaces as CommitOutcomeUnknownError and is never retried.
        """
        async with await self.client.start_session() as session:
            try:
                async with session.start_transaction():
                    yield session
            except PyMongoError as e:
                if e.has_error_label(UNKNOWN_COMMIT_LABEL):
                    raise CommitOutcomeUnknownError(f"Commit outcome unknown: {e}") from e
                if any(e.has_error_label(label) for label in RETRYABLE_LABELS):
                    raise ConflictError(f"Transaction conflict: {e}") from e
                raise

db = Database()

async def get_db() -> Database:
    """Dependency for FastAPI."""
    return db
