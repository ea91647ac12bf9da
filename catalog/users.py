"""
User administration for admins: create, list, inspect and update accounts.
"""

import structlog

from catalog.auth import AuthService
from catalog.database import CatalogDatabase
from catalog.exceptions import ConflictError, NotFoundError
from catalog.models import (
    AdminCreateUser, AdminUpdateUser, Identity, PaginatedResponse, UserListResponse,
    UserQueryParams, UserResponse
)
from catalog.policy import Operation, authorize

logger = structlog.get_logger(__name__)


class UserAdminService:
    """Account management restricted to administrators."""

    def __init__(self, db: CatalogDatabase, auth: AuthService, max_page_size: int = 100):
        self.db = db
        self.auth = auth
        self.max_page_size = max_page_size
        self.logger = logger.bind(component="user_admin_service")

    async def create(self, actor: Identity, data: AdminCreateUser) -> UserResponse:
        authorize(actor, Operation.MANAGE_USERS)
        if await self.db.get_user_by_email(data.email):
            raise ConflictError("User with this email already exists")

        user = await self.auth.create_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            is_active=data.is_active,
        )
        self.logger.info("User created by admin", user_id=user.id, actor_id=actor.user_id)
        return UserResponse.from_user(user)

    async def find_all(self, actor: Identity, params: UserQueryParams) -> UserListResponse:
        authorize(actor, Operation.MANAGE_USERS)
        params = params.capped(self.max_page_size)
        users, total = await self.db.find_users(params)
        return UserListResponse(
            data=[UserResponse.from_user(user) for user in users],
            **PaginatedResponse.envelope(total, params)
        )

    async def get(self, actor: Identity, user_id: str) -> UserResponse:
        authorize(actor, Operation.MANAGE_USERS)
        user = await self.db.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return UserResponse.from_user(user)

    async def update(self, actor: Identity, user_id: str, changes: AdminUpdateUser) -> UserResponse:
        """Change names, role or suspension status of an account."""
        authorize(actor, Operation.MANAGE_USERS)
        user = await self.db.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")

        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        if not fields:
            return UserResponse.from_user(user)

        updated = await self.db.update_user(user_id, fields)
        if updated is None:
            raise NotFoundError(f"User with ID {user_id} not found")

        self.logger.info("User updated by admin", user_id=user_id, actor_id=actor.user_id, fields=sorted(fields))
        return UserResponse.from_user(updated)
