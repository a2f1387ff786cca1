# auth.py — Token verification & role checks for the 4Gears Platform
# Identity is owned by the hosted auth provider. This module only:
# - Verifies the provider's HS256 access tokens (JWT secret shared with the provider)
# - Resolves the caller's profile and role
# - Exposes FastAPI dependencies for signed-in users and admins

import os
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from errors import AuthorizationError
from models import Profile, UserRole

logger = logging.getLogger("fourgears.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("SUPABASE_JWT_SECRET", "")
if not SECRET_KEY:
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "⚠️  SUPABASE_JWT_SECRET not set. Generated ephemeral key; "
        "tokens issued by the auth provider will be rejected."
    )

ALGORITHM = "HS256"
AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# auto_error=False so a missing header surfaces as our 401, not FastAPI's 403
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


# ============================================================
# TOKENS
# ============================================================

def create_access_token(subject: str, email: Optional[str] = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    """Issue a token shaped like the provider's (used by tests and local tooling)"""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "email": email,
        "aud": AUDIENCE,
        "role": "authenticated",
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], audience=AUDIENCE)
    except ExpiredSignatureError:
        raise AuthorizationError("Token expired")
    except JWTError:
        raise AuthorizationError("Invalid token")


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthorizationError("Missing authorization header")

    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthorizationError("Invalid token")

    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise AuthorizationError("Profile not found")

    return CurrentUser(
        id=profile.id,
        email=profile.email or payload.get("email"),
        role=profile.role.value,
    )


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user
