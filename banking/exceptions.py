import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_LIMIT = "INVALID_LIMIT"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    SAME_ACCOUNT = "SAME_ACCOUNT"
    ACCOUNT_NOT_EMPTY = "ACCOUNT_NOT_EMPTY"
    CONTENTION = "CONTENTION"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class LedgerError(Exception):
    """
    Base class for every failure the ledger reports to its callers.
    Each subclass fixes its kind, HTTP status and detail message.
    """
    kind: ErrorKind
    status_code: int = 400
    detail: str = "Ledger error"
    retryable: bool = False

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class LedgerRejection(LedgerError):
    """Business-rule or validation failure. Nothing was mutated."""


class LedgerFailure(LedgerError):
    """Storage-level failure after validation passed. The unit was rolled back."""
    retryable = True


class InvalidAmountError(LedgerRejection):
    kind = ErrorKind.INVALID_AMOUNT
    detail = "Transaction amount must be positive"


class InvalidLimitError(LedgerRejection):
    kind = ErrorKind.INVALID_LIMIT
    detail = "History limit must be at least 1"


class AccountNotFoundError(LedgerRejection):
    kind = ErrorKind.ACCOUNT_NOT_FOUND
    status_code = 404
    detail = "Account not found"


class CustomerNotFoundError(LedgerRejection):
    kind = ErrorKind.CUSTOMER_NOT_FOUND
    status_code = 404
    detail = "Customer not found"


class InsufficientFundsError(LedgerRejection):
    kind = ErrorKind.INSUFFICIENT_FUNDS
    detail = "Insufficient funds for transaction"


class SameAccountError(LedgerRejection):
    kind = ErrorKind.SAME_ACCOUNT
    detail = "Source and destination accounts must differ"


class AccountNotEmptyError(LedgerRejection):
    kind = ErrorKind.ACCOUNT_NOT_EMPTY
    status_code = 409
    detail = "Account balance must be zero before removal"


class ContentionError(LedgerFailure):
    kind = ErrorKind.CONTENTION
    status_code = 409
    detail = "Account is busy, retry the operation"


class StorageFailureError(LedgerFailure):
    kind = ErrorKind.STORAGE_FAILURE
    status_code = 503
    detail = "Storage backend unavailable"
