from expense_approval.models.base import MongoModel, EmbeddedModel
from expense_approval.models.company import Company, PolicyLevel, SingleApprover, ParallelQuorum
from expense_approval.models.expense import Expense, ExpenseStatus, ApprovalStep, StepStatus, WorkflowGraph, GraphNode, GraphEdge, EdgeType
from expense_approval.models.audit import AuditEntry, AuditAction
from expense_approval.models.notification import OutboxEvent, OutboxStatus, NotificationType, ExchangeRate
