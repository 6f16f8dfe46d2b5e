from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.user import UserModel
from app.domain.errors import AccessDeniedError, UserNotFoundError, ValidationFailedError
from app.domain.roles import Permission, Role, has_permission
from app.domain.schemas import UserCreate, UserRead
from app.repos.user_repo import UserRepo

# BIGINT, wieksze id nie moze istniec w bazie
MAX_USER_ID = 2**63 - 1


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        user = UserModel(id=payload.id, name=payload.name, email=payload.email, role=payload.role.value)
        try:
            created = self.repo.create_user(user)
        except IntegrityError:
            self.repo.db.rollback()
            raise ValidationFailedError(f"Email {payload.email} is already registered") from None
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id) if 0 < user_id <= MAX_USER_ID else None
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return UserRead.model_validate(user)

    def resolve_user_id(self, identity: str) -> int:
        """Tozsamosc wywolujacego (email albo id) -> wewnetrzne id usera."""
        identity = (identity or "").strip()
        if not identity:
            raise UserNotFoundError("Missing caller identity")

        if identity.isascii() and identity.isdigit():
            user_id = int(identity)
            user = self.repo.get_user(user_id) if user_id <= MAX_USER_ID else None
        else:
            user = self.repo.get_user_by_email(identity)
        if not user:
            raise UserNotFoundError(f"User {identity} not found")
        return user.id

    def require_permission(self, user_id: int, permission: Permission) -> UserRead:
        user = self.get_user(user_id)
        if not has_permission(Role(user.role), permission):
            raise AccessDeniedError(f"User {user_id} lacks permission {permission.value}")
        return user
