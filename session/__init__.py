# =============================================================================
# SESSION MODULE INITIALIZATION
# =============================================================================
# File: session/__init__.py
# Description: Session module exports
# =============================================================================

from session.models import (
    DeviceInfo,
    LocationInfo,
    SessionList,
    SessionSecurityViolation,
    SessionStartResult,
    SessionStats,
    SessionSummary,
)
from session.device import DeviceClassifier, UserAgentDeviceClassifier
from session.geo import GeoLocator, NullGeoLocator, IPGeolocationLocator, build_geo_locator
from session.storage import SessionStore, RedisSessionStore, MemorySessionStore
from session.repository import SessionRepository
from session.manager import SessionConfig, SessionManager

__all__ = [
    "DeviceInfo",
    "LocationInfo",
    "SessionList",
    "SessionSecurityViolation",
    "SessionStartResult",
    "SessionStats",
    "SessionSummary",
    "DeviceClassifier",
    "UserAgentDeviceClassifier",
    "GeoLocator",
    "NullGeoLocator",
    "IPGeolocationLocator",
    "build_geo_locator",
    "SessionStore",
    "RedisSessionStore",
    "MemorySessionStore",
    "SessionRepository",
    "SessionConfig",
    "SessionManager",
]
