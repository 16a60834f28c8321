"""Domain exceptions raised by the ledger and converted to HTTP responses in main.py."""


class LedgerError(Exception):
    """Base class for caller-facing ledger errors."""
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(LedgerError):
    """Recoverable input or state error (bad split sums, double delete, open balances)."""
    status_code = 400


class PermissionDeniedError(ValidationError):
    """The actor is not allowed to perform a group mutation."""
    status_code = 403


class NotFoundError(LedgerError):
    """A referenced expense, group or user does not exist."""
    status_code = 404
