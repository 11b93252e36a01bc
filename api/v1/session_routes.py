# =============================================================================
# CORRIDOR ACCESS SYSTEM - SESSION ROUTES
# =============================================================================
# File: api/v1/session_routes.py
# Description: Multi-session management API endpoints
# =============================================================================

from fastapi import APIRouter, Depends

from api.middleware.guards import require_admin, require_auth, require_csrf
from auth.dependencies import CurrentPrincipal, ProviderDep, SessionDep
from auth.schemas import MessageResponse, TrustSessionRequest
from core.exceptions import SessionNotFoundError
from session import SessionList, SessionManager, SessionStats, SessionSummary


router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
    dependencies=[Depends(require_auth)],
)


# =============================================================================
# SESSION LIST
# =============================================================================

@router.get(
    "",
    response_model=SessionList,
    summary="List sessions",
    description="All sessions of the signed-in user, most recently used first.",
)
async def list_sessions(principal: CurrentPrincipal, session: SessionDep) -> SessionList:
    """
    List the user's sessions.

    The requesting session is marked with `is_current: true`; expired rows
    that were not cleaned yet have `is_active: false`.
    """
    sessions = await session.get_user_sessions(principal.id)
    return SessionList(sessions=sessions, total=len(sessions))


@router.get(
    "/current",
    response_model=SessionSummary,
    summary="Get the requesting session",
)
async def current_session(session: SessionDep) -> SessionSummary:
    info = await session.get_current_session_info()
    if info is None:
        raise SessionNotFoundError(session.get_id())
    return info


@router.get(
    "/stats",
    response_model=SessionStats,
    summary="Session counters for the signed-in user",
)
async def session_stats(principal: CurrentPrincipal, session: SessionDep) -> SessionStats:
    return await session.get_session_stats(principal.id)


# =============================================================================
# SESSION TERMINATION
# =============================================================================

@router.delete(
    "/others",
    response_model=MessageResponse,
    summary="Sign out everywhere else",
    dependencies=[Depends(require_csrf)],
)
async def terminate_other_sessions(principal: CurrentPrincipal, session: SessionDep) -> MessageResponse:
    count = await session.terminate_other_sessions(principal.id)
    return MessageResponse(message=f"Terminated {count} other session(s)")


@router.delete(
    "/{session_id}",
    response_model=MessageResponse,
    summary="Terminate a session",
    dependencies=[Depends(require_csrf)],
)
async def terminate_session(
    session_id: str,
    principal: CurrentPrincipal,
    session: SessionDep,
) -> MessageResponse:
    """
    End one of the user's sessions.

    Terminating the requesting session signs the user out.
    """
    if not await session.terminate_session(session_id, user_id=principal.id):
        raise SessionNotFoundError(session_id)
    return MessageResponse(message="Session terminated")


# =============================================================================
# TRUST / MAINTENANCE
# =============================================================================

@router.post(
    "/trust",
    response_model=MessageResponse,
    summary="Mark a session as trusted",
    dependencies=[Depends(require_csrf)],
)
async def trust_session(
    body: TrustSessionRequest,
    principal: CurrentPrincipal,
    session: SessionDep,
) -> MessageResponse:
    target = body.session_id or session.get_id()
    owned = {item.session_id for item in await session.get_user_sessions(principal.id)}
    if target not in owned or not await session.mark_as_trusted(target):
        raise SessionNotFoundError(target)
    return MessageResponse(message="Session marked as trusted")


@router.post(
    "/cleanup",
    response_model=MessageResponse,
    summary="Delete expired sessions",
    dependencies=[Depends(require_admin), Depends(require_csrf)],
)
async def cleanup_sessions(provider: ProviderDep) -> MessageResponse:
    count = await SessionManager.clean_expired_sessions(provider.uow, provider.clock())
    return MessageResponse(message=f"Removed {count} expired session(s)")
