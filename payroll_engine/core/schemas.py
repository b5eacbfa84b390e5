from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone


class ErrorInfo(BaseModel):
    msg: str
    code: Optional[str] = None
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ApiResponse(BaseModel):
    """Error envelope shared by the exception handlers and conflict responses."""
    success: bool = False
    errors: List[ErrorInfo] = []
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def fail(cls, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> "ApiResponse":
        return cls(errors=[ErrorInfo(msg=message, code=code, details=details)])

    @classmethod
    def from_errors(cls, errors: List[ErrorInfo]) -> "ApiResponse":
        return cls(errors=errors)
