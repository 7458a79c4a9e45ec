import jwt
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from chore_cycle.config import settings


class AuthService:
    def __init__(self):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.access_token_expire_minutes

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt"""
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def verify_password(self, password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))

    def create_access_token(self, user_id: str) -> str:
        """Create a JWT access token"""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)
        to_encode = {"sub": user_id, "exp": expire}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[str]:
        """Verify JWT token and return user ID"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            user_id: str = payload.get("sub")
            if user_id is None:
                return None
            return user_id
        except jwt.PyJWTError:
            return None

    def get_redis_client(self):
        """Get Redis client from redis_service"""
        from chore_cycle.services.redis_service import redis_service
        return redis_service.redis_client

    def get_user_by_email(self, email: str):
        """Get user by email"""
        from chore_cycle.models.user import User
        redis_client = self.get_redis_client()
        user_data = redis_client.get(f"user_email:{email.lower()}")
        if user_data:
            return User.model_validate_json(user_data)
        return None

    def get_user_by_id(self, user_id: str):
        """Get user by ID"""
        from chore_cycle.models.user import User
        redis_client = self.get_redis_client()
        user_data = redis_client.get(f"user:{user_id}")
        if user_data:
            return User.model_validate_json(user_data)
        return None

    def create_user(self, email: str, full_name: str, password: str):
        """Create a new user"""
        from chore_cycle.models.user import User

        user = User(
            id=str(uuid4()),
            email=email.lower(),
            full_name=full_name,
            hashed_password=self.hash_password(password),
            created_at=datetime.now(timezone.utc),
            chore_ids=[]
        )
        self.update_user(user)
        return user

    def update_user(self, user) -> None:
        """Save user under both lookup keys"""
        redis_client = self.get_redis_client()
        redis_client.set(f"user:{user.id}", user.model_dump_json())
        redis_client.set(f"user_email:{user.email.lower()}", user.model_dump_json())

    def link_chore(self, user_id: str, chore_id: str) -> None:
        user = self.get_user_by_id(user_id)
        if user and chore_id not in user.chore_ids:
            user.chore_ids.append(chore_id)
            self.update_user(user)

    def unlink_chore(self, user_id: str, chore_id: str) -> None:
        user = self.get_user_by_id(user_id)
        if user and chore_id in user.chore_ids:
            user.chore_ids.remove(chore_id)
            self.update_user(user)

    def user_to_response(self, user):
        """Convert User to UserResponse (excluding sensitive data)"""
        from chore_cycle.models.user import UserResponse
        return UserResponse(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            is_active=user.is_active,
            created_at=user.created_at,
            chore_ids=user.chore_ids
        )


auth_service = AuthService()
