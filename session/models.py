# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION MODELS
# =============================================================================
# File: session/models.py
# Description: Pydantic models for session enumeration, statistics,
#              device/location enrichment and start outcomes
# =============================================================================

from typing import Optional, List
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from core.result import Result


class SessionSecurityViolation(str, Enum):
    """Reasons an existing session is destroyed on start()."""

    USER_AGENT_MISMATCH = "user_agent_mismatch"
    IP_MISMATCH = "ip_mismatch"
    EXPIRED = "expired"
    IDLE_TIMEOUT = "idle_timeout"


class DeviceInfo(BaseModel):
    """Device classification derived from the User-Agent header."""

    device_type: str = "desktop"
    device_name: str = "Unknown Device"
    platform: str = "Unknown OS"
    browser: str = "Unknown Browser"


class LocationInfo(BaseModel):
    """Coarse location derived from the client IP."""

    city: str = "Unknown"
    country: str = "Unknown"
    error: Optional[str] = None


class SessionStartResult(Result):
    """
    Outcome of SessionManager.start().

    ``success`` is False only when an existing session failed validation;
    a fresh anonymous session has already been started in that case.
    """

    session_id: Optional[str] = None
    violation: Optional[SessionSecurityViolation] = None
    is_new: bool = False
    degraded: bool = False


class SessionSummary(BaseModel):
    """Session row as shown to the owning user."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str = Field(..., description="Session identifier")
    user_id: Optional[str] = Field(None, description="Bound user")
    ip_address: Optional[str] = None
    device_type: Optional[str] = None
    device_name: Optional[str] = None
    platform: Optional[str] = None
    browser: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    is_trusted: bool = False
    is_current: bool = Field(False, description="Whether this is the requesting session")
    is_active: bool = Field(False, description="expires_at is in the future")
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class SessionStats(BaseModel):
    total_sessions: int = 0
    active_sessions: int = 0
    trusted_sessions: int = 0
    unique_devices: int = 0
    unique_ips: int = 0
    unique_users: Optional[int] = None


class SessionList(BaseModel):
    """List of sessions for API response."""

    sessions: List[SessionSummary] = Field(default_factory=list)
    total: int = Field(0, description="Total number of sessions")
