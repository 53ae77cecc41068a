import hmac

from fastapi import Header, HTTPException, status

from config import settings


def _secret_matches(token: str, secret: str) -> bool:
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


async def require_sync_secret(
    authorization: str | None = Header(default=None, convert_underscores=False),
) -> None:
    secret = settings.sync_secret
    if not secret:
        return
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing auth token"
        )
    token = authorization.split(" ", 1)[1]
    if not _secret_matches(token, secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth token"
        )
