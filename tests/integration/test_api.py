import pytest
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock, patch

from expense_approval.errors import CommitOutcomeUnknownError, ConflictError, NotFoundError, ValidationError
from expense_approval.main import app
from expense_approval.models.expense import ExpenseStatus
from expense_approval.workflow.engine import BypassResult, DecisionResult

from conftest import pending_step

MANAGER = {"X-Actor-Id": "mgr_1", "X-Actor-Role": "manager"}
CFO = {"X-Actor-Id": "cfo_1", "X-Actor-Role": "executive"}

def client():
    # ASGITransport does not run the lifespan, so no database connection is made
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

@pytest.mark.asyncio
async def test_health_check():
    async with client() as ac:
        response = await ac.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

@pytest.mark.asyncio
async def test_missing_actor_is_unauthorized():
    async with client() as ac:
        response = await ac.post("/api/expenses/EXP-1/decision", json={"decision": "approve"})
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_decision_passes_actor_through():
    result = DecisionResult(
        expense_id="EXP-1",
        status=ExpenseStatus.UNDER_REVIEW,
        steps=[pending_step(1, "manager")],
        progress=0
    )
    with patch("expense_approval.api.expenses.approval_engine.decide", new_callable=AsyncMock) as mock_decide:
        mock_decide.return_value = result
        async with client() as ac:
            response = await ac.post(
                "/api/expenses/EXP-1/decision",
                json={"decision": "approve", "comment": "fine"},
                headers=MANAGER
            )

    assert response.status_code == 200
    assert response.json()["status"] == "under_review"
    mock_decide.assert_awaited_once_with(
        "EXP-1", actor_id="mgr_1", decision="approve", comment="fine", actor_roles=["manager"]
    )

@pytest.mark.asyncio
async def test_invalid_decision_literal_rejected():
    async with client() as ac:
        response = await ac.post("/api/expenses/EXP-1/decision", json={"decision": "approved"}, headers=MANAGER)
    assert response.status_code == 422

@pytest.mark.asyncio
async def test_bypass_requires_permission():
    async with client() as ac:
        response = await ac.post("/api/expenses/EXP-1/bypass", headers=MANAGER)
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_bypass_allowed_for_executive():
    result = BypassResult(expense_id="EXP-1", status=ExpenseStatus.APPROVED, steps=[])
    with patch("expense_approval.api.expenses.approval_engine.bypass", new_callable=AsyncMock) as mock_bypass:
        mock_bypass.return_value = result
        async with client() as ac:
            response = await ac.post("/api/expenses/EXP-1/bypass", headers=CFO)

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    mock_bypass.assert_awaited_once_with("EXP-1", actor_id="cfo_1")

@pytest.mark.asyncio
@pytest.mark.parametrize("error, status", [
    (NotFoundError("Expense EXP-1 not found"), 404),
    (ValidationError("Expense EXP-1 is already paid"), 400),
    (ConflictError("Expense EXP-1 changed concurrently"), 409),
    (CommitOutcomeUnknownError("Commit outcome unknown"), 503),
])
async def test_engine_errors_map_to_status(error, status):
    with patch("expense_approval.api.expenses.approval_engine.compile", new_callable=AsyncMock) as mock_compile:
        mock_compile.side_effect = error
        async with client() as ac:
            response = await ac.post("/api/expenses/EXP-1/workflow", headers=MANAGER)

    assert response.status_code == status
    assert response.json()["detail"] == str(error)

@pytest.mark.asyncio
async def test_history_lists_entries():
    with patch("expense_approval.api.expenses.approval_engine.history", new_callable=AsyncMock) as mock_history:
        mock_history.return_value = []
        async with client() as ac:
            response = await ac.get("/api/expenses/EXP-1/history", headers=MANAGER)

    assert response.status_code == 200
    assert response.json() == []
