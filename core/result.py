# =============================================================================
# CORRIDOR ACCESS SYSTEM - OPERATION RESULTS
# =============================================================================
# File: core/result.py
# Description: Result-shaped return values for service operations
#              Expected failures travel as values, not exceptions
# =============================================================================

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Result(BaseModel):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    OPERATION RESULT                                      │
    │  success + human message + optional payload and field errors            │
    └─────────────────────────────────────────────────────────────────────────┘

    Services (SessionManager, AuthService, repositories) return these for
    every anticipated outcome. The HTTP layer decides which failures turn
    into exceptions and status codes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    errors: Dict[str, List[str]] = Field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "", **fields: Any) -> "Result":
        return cls(success=True, message=message, **fields)

    @classmethod
    def fail(
        cls,
        message: str,
        errors: Optional[Dict[str, List[str]]] = None,
        **fields: Any
    ) -> "Result":
        return cls(success=False, message=message, errors=errors or {}, **fields)
