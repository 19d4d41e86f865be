"""Plain helpers shared by the test modules."""
import uuid

from potion.models import UserRole
from potion.security import create_role_token

PASSWORD = "correct-horse-battery"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def role_token(role: UserRole) -> str:
    return create_role_token(
        user_id=role.user_id,
        role_id=role.id,
        email=role.email,
        role_type=role.role_type.value,
        business_owner_id=role.business_owner_id,
    )


def bearer(token: str, **headers) -> dict:
    headers["Authorization"] = f"Bearer {token}"
    return headers
