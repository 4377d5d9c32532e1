from dataclasses import dataclass

from fastapi import HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)
organization_id_header = APIKeyHeader(name="X-Organization-Id", auto_error=False)


@dataclass(frozen=True)
class Actor:
    user_id: str
    organization_id: str


async def get_actor(
    user_id: str | None = Security(user_id_header),
    organization_id: str | None = Security(organization_id_header),
) -> Actor:
    # identity is asserted by the gateway in front of this service
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id")
    if not organization_id or not organization_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Organization-Id")

    return Actor(user_id=user_id.strip(), organization_id=organization_id.strip())
