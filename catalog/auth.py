"""
Authentication: registration, login, token resolution and profile updates.
"""

from typing import Optional, Tuple

import structlog
from pymongo.errors import DuplicateKeyError

from catalog.database import CatalogDatabase
from catalog.exceptions import ConflictError, NotFoundError, UnauthenticatedError
from catalog.models import Identity, ProfileUpdate, RegisterRequest, User, UserRole
from catalog.security import PasswordHasher, TokenService
from utilities.logger import AuditLogger

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_SUSPENDED = "Account suspended"


class AuthService:
    """Validates credentials and maps tokens back to live users."""

    def __init__(
        self,
        db: CatalogDatabase,
        hasher: PasswordHasher,
        tokens: TokenService,
        audit: Optional[AuditLogger] = None
    ):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens
        self.audit = audit or AuditLogger()
        self.logger = logger.bind(component="auth_service")

    async def register(self, data: RegisterRequest) -> Tuple[User, str]:
        """
        Create an account and sign a token for it.

        Raises:
            ConflictError: Email already registered
        """
        if await self.db.get_user_by_email(data.email):
            raise ConflictError("User with this email already exists")

        user = await self.create_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role or UserRole.USER,
        )
        self.logger.info("User registered", user_id=user.id, role=user.role.value)
        return user, self.tokens.issue(user.id, user.role)

    async def create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.USER,
        is_active: bool = True
    ) -> User:
        """Hash the password and insert the account; the unique index is the final guard."""
        try:
            return await self.db.insert_user({
                "email": email,
                "password_hash": self.hasher.hash(password),
                "first_name": first_name,
                "last_name": last_name,
                "role": role,
                "is_active": is_active,
            })
        except DuplicateKeyError:
            raise ConflictError("User with this email already exists")

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Verify credentials, then account status, and sign a token.

        Suspension is only reported to callers that proved the password.

        Raises:
            UnauthenticatedError: Unknown email, wrong password or suspended account
        """
        user = await self.db.get_user_by_email(email)
        if user is None or not self.hasher.verify(password, user.password_hash):
            self.audit.log_login_failure(email, "invalid_credentials")
            raise UnauthenticatedError(INVALID_CREDENTIALS)

        if not user.is_active:
            self.audit.log_login_failure(email, "account_suspended")
            raise UnauthenticatedError(ACCOUNT_SUSPENDED)

        self.audit.log_login_success(user.id)
        return user, self.tokens.issue(user.id, user.role)

    async def resolve(self, token: str) -> Identity:
        """
        Map a bearer token to the identity of a live, active user.

        The role comes from the stored account so role changes apply at once.

        Raises:
            UnauthenticatedError: Invalid or expired token, deleted or suspended user
        """
        claims = self.tokens.verify(token)
        user = await self.db.get_user_by_id(claims.subject_id)
        if user is None:
            raise UnauthenticatedError("User not found")
        if not user.is_active:
            raise UnauthenticatedError(ACCOUNT_SUSPENDED)
        return user.identity()

    async def profile(self, identity: Identity) -> User:
        user = await self.db.get_user_by_id(identity.user_id)
        if user is None:
            raise NotFoundError(f"User with ID {identity.user_id} not found")
        return user

    async def update_profile(self, identity: Identity, changes: ProfileUpdate) -> User:
        """
        Update the caller's own name or email.

        Raises:
            NotFoundError: Account no longer exists
            ConflictError: New email belongs to another account
        """
        user = await self.profile(identity)
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)

        if "email" in fields and fields["email"] != user.email:
            if await self.db.get_user_by_email(fields["email"]):
                raise ConflictError("Email already exists")

        if not fields:
            return user

        try:
            updated = await self.db.update_user(user.id, fields)
        except DuplicateKeyError:
            raise ConflictError("Email already exists")
        if updated is None:
            raise NotFoundError(f"User with ID {user.id} not found")
        return updated
