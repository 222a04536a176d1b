"""
Auth dependency - resolves the bearer token to a workflow actor
"""
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.notifications.infrastructure.sqlalchemy_repository import SqlAlchemyUserDirectory
from app.procurement.domain.models import Actor
from app.settings import procurement_settings
from database import get_postgres_session

# Security
security = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_postgres_session)
) -> Actor:
    """Get the acting user for this request"""
    try:
        payload = jwt.decode(
            credentials.credentials,
            procurement_settings.secret_key,
            algorithms=[procurement_settings.jwt_algorithm],
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid access token")

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid access token")

    actor = await SqlAlchemyUserDirectory(session).get_actor(user_id)
    if actor is None:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return actor
