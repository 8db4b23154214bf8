from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class OrderError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover
        return self.message


@dataclass(frozen=True)
class ValidationError(OrderError):
    pass


@dataclass(frozen=True)
class NotFound(OrderError):
    resource: str
    resource_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"not_found: {self.resource}={self.resource_id} ({self.message})"


@dataclass(frozen=True)
class Unauthorized(OrderError):
    pass


@dataclass(frozen=True)
class Forbidden(OrderError):
    pass


@dataclass(frozen=True)
class InvalidStateTransition(OrderError):
    from_status: str
    to_status: str

    def __str__(self) -> str:  # pragma: no cover
        return f"invalid_state_transition: {self.from_status} -> {self.to_status} ({self.message})"


@dataclass(frozen=True)
class IdempotencyKeyConflict(OrderError):
    key: str

    def __str__(self) -> str:  # pragma: no cover
        return f"idempotency_key_conflict: {self.key} ({self.message})"


@dataclass(frozen=True)
class PersistenceError(OrderError):
    pass


@dataclass(frozen=True)
class DuplicateRecord(PersistenceError):
    constraint: str

    def __str__(self) -> str:  # pragma: no cover
        return f"duplicate_record: {self.constraint} ({self.message})"


@dataclass(frozen=True)
class DownstreamError(OrderError):
    pass


@dataclass(frozen=True)
class DownstreamRejected(DownstreamError):
    """The commerce platform refused the input (user-level validation errors)."""

    user_errors: tuple[str, ...] = field(default=())

    def __str__(self) -> str:  # pragma: no cover
        return f"downstream_rejected: {'; '.join(self.user_errors)} ({self.message})"


@dataclass(frozen=True)
class DownstreamUnavailable(DownstreamError):
    """Transport failure, timeout or malformed response from the platform."""
