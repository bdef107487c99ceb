import pytest
from contextlib import ExitStack, asynccontextmanager
from datetime import datetime, timedelta
from typing import Dict, List
from unittest.mock import AsyncMock, MagicMock, patch

from expense_approval.errors import ConflictError
from expense_approval.models.company import Company, PolicyLevel
from expense_approval.models.expense import ApprovalStep, Expense, ExpenseStatus, StepStatus
from expense_approval.workflow.state import refresh_derived

# Every module that holds a reference to the database singleton
DB_TARGETS = [
    "expense_approval.services.currency.db",
    "expense_approval.services.notifications.db",
    "expense_approval.workflow.unit_of_work.db",
    "expense_approval.workflow.escalation.db",
    "expense_approval.workflow.engine.db",
]

class FakeSession:
    def __init__(self):
        self.undo: Dict[str, dict] = {}

class InMemoryExpenses:
    """Versioned expense store mimicking the compare-and-swap repository."""

    def __init__(self):
        self.docs: Dict[str, dict] = {}
        self.saves = 0

    def put(self, expense: Expense):
        self.docs[expense.expense_id] = expense.model_dump(by_alias=True)

    def current(self, expense_id: str) -> Expense:
        return Expense.model_validate(self.docs[expense_id])

    async def get_by_expense_id(self, expense_id, session=None):
        if expense_id not in self.docs:
            return None
        return self.current(expense_id)

    async def save_workflow(self, expense, session=None):
        stored = self.docs.get(expense.expense_id)
        if stored is None or stored["version"] != expense.version:
            raise ConflictError(f"Expense {expense.expense_id} changed concurrently")
        if session is not None:
            session.undo.setdefault(expense.expense_id, stored)
        expense.version += 1
        self.saves += 1
        self.docs[expense.expense_id] = expense.model_dump(by_alias=True)
        return expense

    async def find_escalation_candidates(self, now):
        ids = []
        for expense_id in self.docs:
            expense = self.current(expense_id)
            if expense.status not in (ExpenseStatus.SUBMITTED, ExpenseStatus.UNDER_REVIEW):
                continue
            if any(s.status == StepStatus.PENDING and s.escalation_at and s.escalation_at <= now
                   for s in expense.approval_chain):
                ids.append(expense_id)
        return ids

@pytest.fixture
def expense_store():
    return InMemoryExpenses()

@pytest.fixture
def mock_db(expense_store):
    mock = MagicMock()
    mock.expenses = expense_store
    mock.companies = AsyncMock()
    mock.companies.get_by_company_id = AsyncMock(return_value=None)
    mock.audit = AsyncMock()
    mock.outbox = AsyncMock()
    mock.exchange_rates = AsyncMock()
    mock.exchange_rates.get_latest = AsyncMock(return_value=None)

    @asynccontextmanager
    async def transaction():
        # Abort undoes writes made through this session only
        session = FakeSession()
        try:
            yield session
        except Exception:
            expense_store.docs.update(session.undo)
            raise
        # Errors queued here surface after the writes are already committed
        if mock.after_commit_errors:
            raise mock.after_commit_errors.pop(0)

    mock.transaction = transaction
    mock.after_commit_errors = []

    with ExitStack() as stack:
        for target in DB_TARGETS:
            stack.enter_context(patch(target, mock))
        yield mock

@pytest.fixture
def mock_dispatch():
    with patch("expense_approval.services.notifications.notification_dispatcher.send_notification",
               new_callable=AsyncMock) as mock:
        yield mock

def make_level(level: int, role: str = None, parallel_roles: List[str] = None, **kwargs) -> PolicyLevel:
    data = {"level": level, **kwargs}
    if parallel_roles:
        data["approver"] = {"kind": "parallel", "roles": parallel_roles}
    else:
        data["approver"] = {"kind": "single", "role": role or "manager"}
    return PolicyLevel(**data)

def make_company(*levels: PolicyLevel, company_id: str = "acme") -> Company:
    return Company(company_id=company_id, name="Acme", approval_rules=list(levels))

def make_expense(amount: float = 500.0, currency: str = "USD", expense_id: str = "EXP-1", **kwargs) -> Expense:
    return Expense(
        expense_id=expense_id,
        company_id=kwargs.pop("company_id", "acme"),
        employee_id=kwargs.pop("employee_id", "emp_1"),
        amount=amount,
        currency=currency,
        **kwargs
    )

def pending_step(level: int, role: str, group: str = None, required: int = 1, due_in_hours: float = 24) -> ApprovalStep:
    return ApprovalStep(
        level=level,
        role=role,
        parallel_group_id=group,
        required_approvals=required,
        escalation_at=datetime.utcnow() + timedelta(hours=due_in_hours)
    )

def expense_with_steps(*steps: ApprovalStep, **kwargs) -> Expense:
    expense = make_expense(status=ExpenseStatus.UNDER_REVIEW, **kwargs)
    expense.approval_chain = list(steps)
    refresh_derived(expense)
    return expense
