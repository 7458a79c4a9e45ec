from fastapi import APIRouter, HTTPException, status, Depends
from chore_cycle.models.user import (
    UserRegistrationRequest,
    UserLoginRequest,
    TokenResponse,
    UserResponse,
)
from chore_cycle.models.chore import Chore, JoinChoreRequest, Person
from chore_cycle.dependencies.auth import get_current_user
from chore_cycle.models.user import User
from chore_cycle.services.auth_service import auth_service
from chore_cycle.services.redis_service import redis_service
from uuid import uuid4

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=TokenResponse)
async def register(request: UserRegistrationRequest):
    """Register a new user"""
    if auth_service.get_user_by_email(request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = auth_service.create_user(
        email=request.email,
        full_name=request.full_name,
        password=request.password
    )

    return TokenResponse(
        access_token=auth_service.create_access_token(user.id),
        token_type="bearer",
        user=auth_service.user_to_response(user)
    )


@router.post("/login", response_model=TokenResponse)
async def login(request: UserLoginRequest):
    """Login user"""
    user = auth_service.get_user_by_email(request.email)

    if not user or not auth_service.verify_password(request.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    return TokenResponse(
        access_token=auth_service.create_access_token(user.id),
        token_type="bearer",
        user=auth_service.user_to_response(user)
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return auth_service.user_to_response(current_user)


@router.post("/join-chore", response_model=Chore)
async def join_chore(
    request: JoinChoreRequest,
    current_user: User = Depends(get_current_user)
):
    """Join a chore by ID"""
    chore = redis_service.get_chore_by_id(request.chore_id)
    if not chore:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Chore not found"
        )

    if chore.is_visible_to(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are already a member of this chore"
        )

    chore.shared_with.append(current_user.id)
    if chore.find_person_for_user(current_user.id) is None:
        chore.people.append(Person(
            id=str(uuid4()),
            name=current_user.full_name,
            user_id=current_user.id
        ))
    redis_service.save_chore(chore)
    auth_service.link_chore(current_user.id, chore.id)

    redis_service.publish_update({
        "type": "user_joined",
        "chore_id": chore.id,
        "chore": chore.model_dump(),
        "user_id": current_user.id,
    }, audience=chore.audience())

    return chore
