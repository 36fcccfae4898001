import secrets

from fastapi import Header, HTTPException

from . import config


async def get_current_user_id(x_user_id: str = Header(default="")) -> str:
    """Caller identity, forwarded by the auth proxy as X-User-Id."""
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()


async def require_internal_caller(x_internal_token: str = Header(default="")) -> None:
    """Only the scheduler may run cross-user jobs. Disabled when no token is configured."""
    expected = config.INTERNAL_API_TOKEN
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        raise HTTPException(status_code=403, detail="Forbidden")
