"""
Authentication utilities and JWT token handling
Tokens carry the caller's user id, organization and admin flag
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# Security configuration
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 120

http_bearer = HTTPBearer(auto_error=False)


def get_secret_key():
    """Get secret key from config module"""
    from .config import config
    return config.SECRET_KEY


@dataclass
class Principal:
    """Authenticated caller"""
    user_id: str
    organization_id: Optional[Any] = None
    is_admin: bool = False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token
    
    Args:
        data: Claims (must include 'sub'; 'org_id' and 'is_admin' are optional)
        expires_delta: Optional custom expiration time
    
    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "exp": expire,
        "jti": str(uuid.uuid4()),
        "iat": now,
    })
    return jwt.encode(to_encode, get_secret_key(), algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Verify and decode a JWT token"""
    try:
        return jwt.decode(token, get_secret_key(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token verification failed: Token has expired")
        return None
    except JWTError as e:
        logger.warning(f"Token verification failed: {type(e).__name__} - {str(e)}")
        return None


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)
) -> Principal:
    """Get the authenticated caller from the bearer token"""
    token = credentials.credentials.strip() if credentials and credentials.credentials else None
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token is missing",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    payload = verify_token(token)
    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    return Principal(
        user_id=str(payload["sub"]),
        organization_id=payload.get("org_id"),
        is_admin=bool(payload.get("is_admin", False)),
    )


def require_organization(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Require the caller to act on behalf of an organization"""
    if principal.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No organization associated with this account"
        )
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Require the caller to be an admin"""
    if not principal.is_admin:
        logger.warning(f"Non-admin user {principal.user_id} attempted to access admin endpoint")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return principal
