from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
import enum
from ..config import settings


class Role(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    PARTNER = "partner"
    GUEST = "guest"


STAFF_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.PARTNER})
TRUSTED_PRICING_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as asserted by the auth subsystem"""
    user_id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def create_access_token(user_id: str, role: Role, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token (tokens are normally issued by the auth subsystem)"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=15))
    to_encode = {"sub": user_id, "role": role.value, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def principal_from_token(token: str) -> Optional[Principal]:
    """Build a Principal from an access token, None if the token is unusable"""
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None

    user_id = payload.get("sub")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        return None

    if not user_id:
        return None
    return Principal(user_id=str(user_id), role=role)
