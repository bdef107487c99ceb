# ---------------------------------
# TYPED EXCEPTIONS
# ---------------------------------


class ApprovalEngineError(Exception):
    """Base class for errors raised by the approval workflow engine."""
    pass

class NotFoundError(ApprovalEngineError):
    """Expense or company missing, or no decidable step for the actor."""
    pass

class ValidationError(ApprovalEngineError):
    pass

class ConflictError(ApprovalEngineError):
    """Raised when a versioned write lost a race with a concurrent writer."""
    pass

class CommitOutcomeUnknownError(ApprovalEngineError):
    """The commit may or may not have been applied; the work must not be replayed."""
    pass
