"""Password hashing and signed identity tokens."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from catalog.exceptions import UnauthenticatedError
from catalog.models import UserRole

logger = structlog.get_logger(__name__)


def _truncate_for_bcrypt(password: str) -> str:
    """Truncate password to bcrypt's 72-byte limit.

    Truncation happens on the UTF-8 encoded bytes and decodes with 'ignore' so
    a multi-byte sequence is never split.
    """
    b = password.encode("utf-8")[:72]
    return b.decode("utf-8", "ignore")


class PasswordHasher:
    """bcrypt hashing behind an opaque hash/verify interface."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        """Hash a password."""
        return self._context.hash(_truncate_for_bcrypt(password))

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plain password against a stored digest."""
        try:
            return self._context.verify(_truncate_for_bcrypt(password), password_hash)
        except ValueError:
            # Malformed digest in storage
            logger.warning("Unrecognised password digest")
            return False


@dataclass(frozen=True)
class TokenClaims:
    """Verified token payload."""
    subject_id: str
    role: UserRole
    expires_at: datetime


class TokenService:
    """HS256 JWT issuance and verification; expiry is enforced."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, subject_id: str, role: UserRole, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed access token for a user."""
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        payload = {"sub": subject_id, "role": UserRole(role).value, "exp": expire}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises:
            UnauthenticatedError: Bad signature, malformed payload or expired token
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise UnauthenticatedError("Token has expired")
        except JWTError:
            raise UnauthenticatedError("Could not validate credentials")

        subject_id = payload.get("sub")
        role = payload.get("role")
        if not subject_id or "exp" not in payload or role not in {r.value for r in UserRole}:
            raise UnauthenticatedError("Invalid token payload")

        return TokenClaims(
            subject_id=subject_id,
            role=UserRole(role),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
