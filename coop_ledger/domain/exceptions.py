"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Action input is malformed or inconsistent with current state"""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ValidationError):
    """Referenced member, loan, repayment or period does not exist"""

    pass


class PersistenceError(DomainException):
    """Saving or loading the state snapshot failed"""

    pass
