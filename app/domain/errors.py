from __future__ import annotations

from collections.abc import Iterable


class ServiceError(Exception):
    pass


class AuthenticationError(ServiceError):
    pass


class AuthorizationError(ServiceError):
    pass


class ValidationError(ServiceError):
    def __init__(self, message: str, messages: Iterable[str] | None = None) -> None:
        super().__init__(message)
        self.messages = list(messages) if messages is not None else [message]


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class DuplicateRuleError(ConflictError):
    pass


class RuleStoreError(ServiceError):
    """Rule storage could not be read while building an ability."""
