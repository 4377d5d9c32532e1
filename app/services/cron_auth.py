import secrets

from fastapi import Header, HTTPException

from app.core.config import settings


async def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    expected = settings.cron_secret.get_secret_value()
    scheme, _, token = (authorization or "").partition(" ")
    if not expected or scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
