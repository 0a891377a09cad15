"""
Token verification and the current-user dependency.

Identity is issued elsewhere; assetflow only verifies bearer tokens (or the
``access_token`` cookie) and turns the ``sub`` claim into a UserSnapshot.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from assetflow.config import settings
from assetflow.database import get_db
from assetflow.exceptions import UserNotFoundError
from assetflow.schemas.snapshots import UserSnapshot
from assetflow.services.asset_repository import AssetRepository

logger = logging.getLogger(__name__)

# OAuth2 scheme for token validation; the cookie is checked when no header is sent
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    if "sub" not in to_encode:
        raise ValueError("Missing 'sub' claim (user id) in token data.")

    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str:
    """Return the user id carried by *token*."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        ) from None
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from None

    user_id = payload.get("sub")
    if user_id is None:
        logger.warning("Token is missing 'sub' claim")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not contain 'sub' field.",
        )
    return user_id


async def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserSnapshot:
    """
    Resolve the authenticated user.

    Raises:
        HTTPException: 401 for a missing/invalid token or unknown user,
            403 for a deactivated account
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = token or request.cookies.get("access_token")
    if not token:
        raise credentials_exception

    user_id = decode_access_token(token)
    try:
        user = await AssetRepository(db).get_user(user_id)
    except UserNotFoundError:
        logger.warning(f"Token subject {user_id} does not match any user")
        raise credentials_exception from None

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is deactivated")

    request.state.user = user
    return user
