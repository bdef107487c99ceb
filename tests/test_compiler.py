import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from expense_approval.models.expense import ExpenseStatus, StepStatus
from expense_approval.workflow.compiler import WorkflowCompiler

from conftest import make_company, make_expense, make_level

NOW = datetime(2026, 1, 5, 9, 0, 0)

def identity_converter():
    converter = MagicMock()
    converter.convert = AsyncMock(side_effect=lambda amount, source, target: float(amount))
    return converter

async def compile_steps(company, expense, converter=None):
    compiler = WorkflowCompiler(converter=converter or identity_converter())
    applicable, skipped = await compiler.resolve_levels(expense, company)
    return compiler, compiler.build_steps(applicable, now=NOW), skipped

@pytest.mark.asyncio
async def test_levels_below_threshold_are_skipped():
    company = make_company(
        make_level(1, "manager", threshold_amount=1000),
        make_level(2, "finance", threshold_amount=5000),
    )
    _, steps, skipped = await compile_steps(company, make_expense(amount=500))

    # Nothing applies, so the single fallback gate is level 1 / manager
    assert len(steps) == 1
    assert steps[0].level == 1
    assert steps[0].role == "manager"
    assert skipped == [1, 2]

@pytest.mark.asyncio
async def test_threshold_is_inclusive_and_levels_sorted():
    company = make_company(
        make_level(3, "executive", threshold_amount=5000),
        make_level(1, "manager", threshold_amount=0),
        make_level(2, "finance", threshold_amount=1000),
    )
    _, steps, skipped = await compile_steps(company, make_expense(amount=1000))

    assert [(s.level, s.role) for s in steps] == [(1, "manager"), (2, "finance")]
    assert skipped == [3]

@pytest.mark.asyncio
async def test_parallel_level_expands_into_group():
    level = make_level(1, parallel_roles=["financeA", "financeB", "financeC"], required_approvals=2)
    level.approver.role_overrides = {"financeC": 1}
    _, steps, _ = await compile_steps(make_company(level), make_expense(amount=200))

    assert len(steps) == 3
    group_ids = {s.parallel_group_id for s in steps}
    assert len(group_ids) == 1 and None not in group_ids
    assert {s.level for s in steps} == {1}
    assert [s.required_approvals for s in steps] == [2, 2, 1]
    assert all(s.status == StepStatus.PENDING and s.approvals_received == 0 for s in steps)

@pytest.mark.asyncio
async def test_each_parallel_level_gets_its_own_group():
    company = make_company(
        make_level(1, parallel_roles=["a", "b"]),
        make_level(2, parallel_roles=["c", "d"]),
    )
    _, steps, _ = await compile_steps(company, make_expense(amount=10))
    assert steps[0].parallel_group_id == steps[1].parallel_group_id
    assert steps[2].parallel_group_id == steps[3].parallel_group_id
    assert steps[0].parallel_group_id != steps[2].parallel_group_id

@pytest.mark.asyncio
async def test_auto_approve_below_ceiling():
    company = make_company(make_level(1, "manager", threshold_amount=0, auto_approve_below=150))
    _, steps, _ = await compile_steps(company, make_expense(amount=100))

    step = steps[0]
    assert step.status == StepStatus.APPROVED
    assert step.auto_approved is True
    assert step.approvals_received == step.required_approvals
    assert step.escalation_at is None

@pytest.mark.asyncio
async def test_pending_steps_get_sla_deadline():
    company = make_company(make_level(1, "manager", sla_hours=8, auto_approve_below=150))
    _, steps, _ = await compile_steps(company, make_expense(amount=151))

    assert steps[0].status == StepStatus.PENDING
    assert steps[0].escalation_at == NOW + timedelta(hours=8)

@pytest.mark.asyncio
async def test_fallback_step_for_empty_policy():
    _, steps, _ = await compile_steps(make_company(), make_expense(amount=42))
    assert len(steps) == 1
    assert steps[0].required_approvals == 1
    assert steps[0].escalation_at == NOW + timedelta(hours=24)

@pytest.mark.asyncio
async def test_threshold_compared_in_level_currency():
    converter = MagicMock()
    # 100 EUR -> 2000 in the level's currency
    converter.convert = AsyncMock(return_value=2000.0)
    company = make_company(make_level(1, "finance", threshold_amount=1000, threshold_currency="SEK"))
    _, steps, _ = await compile_steps(company, make_expense(amount=100, currency="EUR"), converter)

    converter.convert.assert_awaited_once_with(100, "EUR", "SEK")
    assert steps[0].role == "finance"

@pytest.mark.asyncio
async def test_apply_plan_marks_fully_auto_approved_expense_approved():
    company = make_company(make_level(1, "manager", threshold_amount=0, auto_approve_below=150))
    expense = make_expense(amount=100)
    compiler, steps, _ = await compile_steps(company, expense)

    compiler.apply_plan(expense, steps)

    assert expense.status == ExpenseStatus.APPROVED
    assert expense.approval_progress == 100
    assert len(expense.workflow_graph.nodes) == 1

@pytest.mark.asyncio
async def test_recompile_replaces_previous_chain():
    company = make_company(make_level(1, "manager"), make_level(2, "finance", threshold_amount=1000))
    expense = make_expense(amount=2000)
    compiler, steps, _ = await compile_steps(company, expense)
    compiler.apply_plan(expense, steps)
    expense.approval_chain[0].status = StepStatus.APPROVED

    _, fresh, _ = await compile_steps(company, expense)
    compiler.apply_plan(expense, fresh)

    assert len(expense.approval_chain) == 2
    assert all(s.status == StepStatus.PENDING for s in expense.approval_chain)
    assert expense.approval_progress == 0
    assert expense.current_approval_level == 1
    assert expense.status == ExpenseStatus.UNDER_REVIEW
