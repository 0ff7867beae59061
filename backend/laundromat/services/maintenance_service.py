# Overview: Service-layer operations for maintenance; purges expired auth records.

from __future__ import annotations

from . import login_throttle_service, reset_code_service, session_service


def purge_expired() -> dict[str, int]:
    """
    Delete expired/revoked session tokens, used or expired reset codes and
    login attempts too old to affect a lockout.

    Orders, drawer events and time entries are never purged.
    """
    return {
        "sessions": session_service.cleanup_expired_sessions(),
        "reset_codes": reset_code_service.purge_expired(),
        "login_attempts": login_throttle_service.purge_old_attempts(),
    }
