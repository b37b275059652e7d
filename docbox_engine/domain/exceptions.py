"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidOverrideError(DomainException):
    """User override targets an unknown field or carries an unusable value"""

    pass
