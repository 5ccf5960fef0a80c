"""Error taxonomy and the result object returned by user-facing queue operations."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

REASON_NOT_FOUND = 'not_found'
REASON_INVALID_STATE = 'invalid_state'
REASON_VALIDATION = 'validation'
REASON_INTEGRITY = 'integrity'
REASON_ERROR = 'error'


class QueueError(Exception):
    reason = REASON_ERROR


class NotFound(QueueError):
    reason = REASON_NOT_FOUND


class InvalidState(QueueError):
    reason = REASON_INVALID_STATE


class ValidationError(QueueError):
    reason = REASON_VALIDATION


class IntegrityError(QueueError):
    """Snapshot payload references ids it does not define."""
    reason = REASON_INTEGRITY


@dataclass
class OperationResult:
    success: bool
    error: Optional[str] = None
    reason: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data):
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, exc):
        return cls(success=False, error=str(exc), reason=getattr(exc, 'reason', REASON_ERROR))

    def to_dict(self):
        payload = {'success': self.success}
        if self.success:
            payload.update(self.data)
        else:
            payload['error'] = self.error
            payload['reason'] = self.reason
        return payload
