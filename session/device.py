# =============================================================================
# CORRIDOR ACCESS SYSTEM - DEVICE CLASSIFICATION
# =============================================================================
# File: session/device.py
# Description: Pluggable User-Agent classification for session rows
# =============================================================================

from abc import ABC, abstractmethod
from typing import Optional

from session.models import DeviceInfo


class DeviceClassifier(ABC):
    """Strategy turning a User-Agent header into a DeviceInfo."""

    @abstractmethod
    def classify(self, user_agent: Optional[str]) -> DeviceInfo:
        """Classify the given header; never raises."""


class UserAgentDeviceClassifier(DeviceClassifier):
    """
    Substring rules over the raw User-Agent header.

    Rules:
        - Mobile / Android / iPhone / iPad   → mobile (iPhone, iPad, Android Device)
        - otherwise Tablet                   → tablet
        - Windows NT / Mac OS X / Linux      → platform, applied last
        - Chrome (not Edg), Firefox, Safari (not Chrome), Edg → browser

    An iPad UA matches the mobile rule before the tablet rule. The
    platform pass keeps iOS and Android, whose UAs also carry
    "like Mac OS X" and "Linux".
    """

    def classify(self, user_agent: Optional[str]) -> DeviceInfo:
        ua = user_agent or ""
        info = DeviceInfo()

        if any(token in ua for token in ("Mobile", "Android", "iPhone", "iPad")):
            info.device_type = "mobile"
            if "iPhone" in ua:
                info.device_name = "iPhone"
                info.platform = "iOS"
            elif "iPad" in ua:
                info.device_name = "iPad"
                info.platform = "iOS"
            elif "Android" in ua:
                info.device_name = "Android Device"
                info.platform = "Android"
        elif "Tablet" in ua:
            info.device_type = "tablet"

        if "Windows NT" in ua:
            info.platform = "Windows"
        elif "Mac OS X" in ua and info.platform != "iOS":
            info.platform = "macOS"
        elif "Linux" in ua and info.platform != "Android":
            info.platform = "Linux"

        if "Chrome" in ua and "Edg" not in ua:
            info.browser = "Chrome"
        elif "Firefox" in ua:
            info.browser = "Firefox"
        elif "Safari" in ua and "Chrome" not in ua:
            info.browser = "Safari"
        elif "Edg" in ua:
            info.browser = "Edge"

        return info
