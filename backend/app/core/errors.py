"""Error taxonomy for the commission engine.

Services raise ``CommissionError`` with an ``ErrorKind``; the API layer maps
kinds to HTTP status codes in one place (``STATUS_BY_KIND``).
"""
import enum


class ErrorKind(str, enum.Enum):
    UNKNOWN_AGENT = "UnknownAgent"
    INVALID_TARGET = "InvalidTarget"
    INVALID_AMOUNT = "InvalidAmount"
    MISSING_AMOUNT = "MissingAmount"
    INVALID_RULE = "InvalidRule"
    ACTIVE_RULE_EXISTS = "ActiveRuleExists"
    RULE_IN_USE = "RuleInUse"
    DUPLICATE_COMMISSION = "DuplicateCommission"
    INVALID_TRANSITION = "InvalidTransition"
    NOT_FOUND = "NotFound"


class CommissionError(Exception):
    """Raised by the rule store, recorder, calculator and ledger."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self):
        return f"CommissionError({self.kind.value}, {self.message!r})"


STATUS_BY_KIND = {
    ErrorKind.UNKNOWN_AGENT: 403,
    ErrorKind.INVALID_TARGET: 400,
    ErrorKind.INVALID_AMOUNT: 422,
    ErrorKind.MISSING_AMOUNT: 422,
    ErrorKind.INVALID_RULE: 422,
    ErrorKind.ACTIVE_RULE_EXISTS: 409,
    ErrorKind.RULE_IN_USE: 409,
    ErrorKind.DUPLICATE_COMMISSION: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.NOT_FOUND: 404,
}
