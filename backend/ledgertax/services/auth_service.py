"""
Authentication Service

Callers present a bearer JWT carrying their user id, organization and role.
Tenant scoping for every tax-rule endpoint comes from these claims.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ledgertax.core.config import settings
from ledgertax.models.user import TokenData, UserRole

# JWT security
security = HTTPBearer()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def verify_token(token: str, token_type: str = "access") -> TokenData:
    """Verify JWT token and return token data"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    organization_id = payload.get("org_id")
    role = payload.get("role")

    if user_id is None or organization_id is None or payload.get("type") != token_type:
        raise credentials_exception

    try:
        return TokenData(
            user_id=str(user_id),
            organization_id=str(organization_id),
            role=UserRole(role),
            email=payload.get("email"),
        )
    except ValueError:
        raise credentials_exception


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> TokenData:
    """Get the authenticated caller"""
    return verify_token(credentials.credentials)


def require_roles(*roles: UserRole) -> Callable:
    """Dependency that admits only callers holding one of the roles"""
    async def checker(current_user: TokenData = Depends(get_current_user)) -> TokenData:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions"
            )
        return current_user
    return checker
