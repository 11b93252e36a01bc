# =============================================================================
# CORRIDOR ACCESS SYSTEM - REQUEST CONTEXT
# =============================================================================
# File: core/context.py
# Description: Per-request context carrying client metadata, the resolved
#              principal and cookie instructions queued by services
# =============================================================================

from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from ipaddress import ip_address, ip_network

from pydantic import BaseModel, Field, field_validator
from starlette.requests import Request
from starlette.responses import Response

from core.config import settings
from utils.helpers import is_api_path


# =============================================================================
# PRINCIPAL
# =============================================================================

class Principal(BaseModel):
    """
    Authenticated identity bound to a session.

    Built from the user record at login and cached in session data under
    ``user.*``. It is not re-verified against the datastore on every
    request.
    """

    id: str
    email: str
    name: str = ""
    username: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    groups: List[str] = Field(default_factory=list)
    department: Optional[str] = None
    location: Optional[str] = None
    is_active: bool = True
    email_verified_at: Optional[datetime] = None

    @field_validator("roles", "groups")
    @classmethod
    def normalize_names(cls, v: List[str]) -> List[str]:
        """Role and group names compare case-insensitively."""
        seen: List[str] = []
        for item in v:
            name = str(item).strip().lower()
            if name and name not in seen:
                seen.append(name)
        return seen

    @property
    def primary_role(self) -> Optional[str]:
        return self.roles[0] if self.roles else None

    def to_session(self) -> Dict[str, Any]:
        """Shape stored under the ``user`` key of session data."""
        data = self.model_dump(mode="json")
        data["role"] = self.primary_role
        return data

    @classmethod
    def from_session(cls, data: Optional[Dict[str, Any]]) -> Optional["Principal"]:
        if not isinstance(data, dict) or not data.get("id"):
            return None
        roles = list(data.get("roles") or [])
        if not roles and data.get("role"):
            roles = [data["role"]]
        return cls(
            id=str(data["id"]),
            email=data.get("email") or "",
            name=data.get("name") or "",
            username=data.get("username"),
            roles=roles,
            groups=list(data.get("groups") or []),
            department=data.get("department"),
            location=data.get("location"),
            is_active=data.get("is_active", True),
            email_verified_at=data.get("email_verified_at"),
        )


# =============================================================================
# COOKIE INSTRUCTIONS
# =============================================================================

class CookieInstruction(BaseModel):
    """A Set-Cookie to apply on the outgoing response."""

    name: str
    value: str = ""
    max_age: Optional[int] = None
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = True
    samesite: Literal["strict", "lax", "none"] = "strict"
    delete: bool = False

    def apply(self, response: Response) -> None:
        if self.delete:
            response.delete_cookie(
                self.name,
                path=self.path,
                domain=self.domain,
                secure=self.secure,
                httponly=self.httponly,
                samesite=self.samesite,
            )
            return
        response.set_cookie(
            self.name,
            self.value,
            max_age=self.max_age,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

class RequestContext:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    REQUEST CONTEXT                                       │
    │  One instance per HTTP request, built by the session middleware         │
    └─────────────────────────────────────────────────────────────────────────┘

    Holds what the session, auth and access services need to know about
    the caller (IP, user agent, cookies, scheme) and collects the cookies
    they want written back. Once authentication is resolved the
    ``principal`` attribute carries the identity for the rest of the
    request.

    The request-scoped services are attached as ``session``, ``auth`` and
    ``access`` by the middleware.
    """

    def __init__(
        self,
        client_ip: str = "unknown",
        user_agent: str = "",
        cookies: Optional[Dict[str, str]] = None,
        method: str = "GET",
        path: str = "/",
        is_secure: bool = False,
        wants_json: bool = False,
        request_id: Optional[str] = None,
    ):
        self.client_ip = client_ip
        self.user_agent = user_agent
        self.cookies: Dict[str, str] = dict(cookies or {})
        self.method = method.upper()
        self.path = path
        self.is_secure = is_secure
        self.wants_json = wants_json
        self.request_id = request_id

        self.principal: Optional[Principal] = None
        self.pending_cookies: List[CookieInstruction] = []

        self.session: Any = None
        self.auth: Any = None
        self.access: Any = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        accept = request.headers.get("accept", "")
        path = request.url.path
        return cls(
            client_ip=resolve_client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
            cookies=dict(request.cookies),
            method=request.method,
            path=path,
            is_secure=request.url.scheme == "https"
            or (
                is_trusted_proxy(request.client.host if request.client else None)
                and request.headers.get("x-forwarded-proto", "") == "https"
            ),
            wants_json=is_api_path(path)
            or "application/json" in accept
            or request.headers.get("x-requested-with", "") == "XMLHttpRequest",
            request_id=getattr(request.state, "request_id", None),
        )

    def queue_cookie(self, instruction: CookieInstruction) -> None:
        """Queue a cookie, replacing any earlier instruction for the same name."""
        self.pending_cookies = [c for c in self.pending_cookies if c.name != instruction.name]
        self.pending_cookies.append(instruction)
        self.cookies.pop(instruction.name, None)
        if not instruction.delete:
            self.cookies[instruction.name] = instruction.value

    def apply_cookies(self, response: Response) -> None:
        for instruction in self.pending_cookies:
            instruction.apply(response)
        self.pending_cookies = []


def is_trusted_proxy(host: Optional[str], trusted_proxies: Optional[List[str]] = None) -> bool:
    """True if ``host`` falls inside one of the trusted proxy addresses or networks."""
    if trusted_proxies is None:
        trusted_proxies = settings.trusted_proxies_list
    if not host or not trusted_proxies:
        return False
    try:
        address = ip_address(host)
    except ValueError:
        return False
    for entry in trusted_proxies:
        try:
            if address in ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def resolve_client_ip(request: Request, trusted_proxies: Optional[List[str]] = None) -> str:
    """
    Extract client IP address from request.

    X-Forwarded-For and X-Real-IP are only read when the connecting peer is
    a trusted proxy. The forwarded chain is walked from the right and the
    first address that is not itself a trusted proxy is the client.
    """
    peer = request.client.host if request.client else None
    if not is_trusted_proxy(peer, trusted_proxies):
        return peer or "unknown"

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        for hop in reversed(hops):
            if not is_trusted_proxy(hop, trusted_proxies):
                return hop
        if hops:
            return hops[0]

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return peer or "unknown"
