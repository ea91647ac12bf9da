"""Authentication routes."""
from fastapi import APIRouter, Depends, status

from api.auth import get_current_identity
from api.dependencies import get_auth_service
from catalog.auth import AuthService
from catalog.models import AuthResponse, Identity, LoginRequest, ProfileUpdate, RegisterRequest, UserResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """
    Register a new user.

    - Creates the account with a hashed password
    - Returns a JWT access token
    """
    user, token = await auth.register(request)
    return AuthResponse(access_token=token, message="User created successfully", user=UserResponse.from_user(user))


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """
    Login with email and password.

    - Validates credentials, then account status
    - Returns a JWT access token
    """
    user, token = await auth.login(request.email, request.password)
    return AuthResponse(access_token=token, message="Login successful", user=UserResponse.from_user(user))


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    identity: Identity = Depends(get_current_identity),
    auth: AuthService = Depends(get_auth_service)
):
    """Get the authenticated user's profile."""
    return UserResponse.from_user(await auth.profile(identity))


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    changes: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    auth: AuthService = Depends(get_auth_service)
):
    """Update the authenticated user's name or email."""
    return UserResponse.from_user(await auth.update_profile(identity, changes))
