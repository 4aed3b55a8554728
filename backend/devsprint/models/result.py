"""
Operation result envelope.

Every lifecycle and management operation reports its outcome through an
``OperationResult`` instead of raising across the service boundary.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Why an operation was rejected."""
    UNAUTHORIZED = "unauthorized"
    INVALID_TRANSITION = "invalid_transition"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERSISTENCE = "persistence"


class OperationResult(BaseModel):
    """``{success: true, ...}`` or ``{success: false, error, kind}``."""
    success: bool
    error: Optional[str] = None
    kind: Optional[FailureKind] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: FailureKind) -> "OperationResult":
        return cls(success=False, error=error, kind=kind)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def to_payload(self) -> Dict[str, Any]:
        """Flatten into the JSON shape returned to callers."""
        if self.success:
            payload: Dict[str, Any] = {"success": True}
            payload.update(self.data)
            return payload
        return {"success": False, "error": self.error, "kind": self.kind.value if self.kind else None}
