"""
RepairDesk Backend - Authentication Service
=============================================

What:  Password hashing, admin/technician login, technician password
       changes and JWT issuance.
How:   bcrypt for password hashes, python-jose for HS256 bearer tokens
       carrying `sub`, `role`, `email` and `exp`.
Who:   Auth routes (login), the route dependencies in routes/deps.py
       (token decoding), TechnicianService and ReviewService (hashing).
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.config import settings
from repairdesk.exceptions import AuthenticationError, NotFoundError, ValidationError
from repairdesk.models.admin import Admin
from repairdesk.models.technician import TECHNICIAN_ACTIVE, Technician
from repairdesk.schemas.auth import TokenResponse

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_TECHNICIAN = "technician"

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72
_PASSWORD_ALPHABET = string.ascii_letters + string.digits


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def generate_password(length: int = 12) -> str:
    """Random initial password for accounts provisioned by the system."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


# ── Tokens ────────────────────────────────────────────────────────────────

def create_access_token(
    subject: str,
    role: str,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {"sub": str(subject), "role": role, "email": email, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a bearer token.

    Raises:
        AuthenticationError: bad signature, expired, or missing claims.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError(message="Invalid or expired token", context={"error": str(e)})

    if not payload.get("sub") or not payload.get("role"):
        raise AuthenticationError(message="Invalid or expired token")
    return payload


# ── Login ─────────────────────────────────────────────────────────────────

class AuthService:
    """Credential checks against the admins and technicians tables."""

    async def authenticate_admin(self, db: AsyncSession, email: str, password: str) -> TokenResponse:
        result = await db.execute(select(Admin).where(func.lower(Admin.email) == email.strip().lower()))
        admin = result.scalar_one_or_none()

        if admin is None or not verify_password(password, admin.password_hash):
            logger.warning("Failed admin login for %s", email)
            raise AuthenticationError(message="Invalid email or password")

        logger.info("Admin %s logged in", admin.id)
        return TokenResponse(
            access_token=create_access_token(admin.id, ROLE_ADMIN, admin.email),
            role=ROLE_ADMIN,
            user={"id": admin.id, "email": admin.email, "name": admin.name, "surname": admin.surname},
        )

    async def authenticate_technician(self, db: AsyncSession, email: str, password: str) -> TokenResponse:
        result = await db.execute(
            select(Technician).where(func.lower(Technician.email) == email.strip().lower())
        )
        technician = result.scalar_one_or_none()

        if technician is None or not verify_password(password, technician.password_hash):
            logger.warning("Failed technician login for %s", email)
            raise AuthenticationError(message="Invalid email or password")

        if technician.status != TECHNICIAN_ACTIVE:
            raise AuthenticationError(
                message="This technician account is not active",
                context={"status": technician.status},
            )

        logger.info("Technician %s logged in", technician.id)
        return TokenResponse(
            access_token=create_access_token(technician.id, ROLE_TECHNICIAN, technician.email),
            role=ROLE_TECHNICIAN,
            user={
                "id": technician.id,
                "email": technician.email,
                "name": technician.name,
                "surname": technician.surname,
                "specialization": technician.specialization,
            },
        )

    async def change_technician_password(
        self,
        db: AsyncSession,
        technician_id: int,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Replace a technician's password, typically the temporary one sent on
        approval. The caller's session commits.

        Raises:
            NotFoundError:   no such technician
            ValidationError: current password is wrong, or the new one is unchanged
        """
        technician = await db.get(Technician, technician_id)
        if technician is None:
            raise NotFoundError(resource="technician", resource_id=str(technician_id))

        if not verify_password(current_password, technician.password_hash):
            logger.warning("Technician %s supplied a wrong current password", technician_id)
            raise ValidationError(
                message="Current password is incorrect",
                field="current_password",
            )
        if current_password == new_password:
            raise ValidationError(
                message="The new password must differ from the current one",
                field="new_password",
            )

        technician.password_hash = hash_password(new_password)
        await db.flush()
        logger.info("Technician %s changed their password", technician_id)

    async def seed_default_admin(self, db: AsyncSession) -> Optional[Admin]:
        """Create the configured default admin when the admins table is empty."""
        count = await db.scalar(select(func.count(Admin.id)))
        if count:
            return None

        admin = Admin(
            email=settings.default_admin_email.lower(),
            password_hash=hash_password(settings.default_admin_password),
            name="Admin",
            surname="RepairDesk",
        )
        db.add(admin)
        await db.commit()
        logger.info("Seeded default admin %s", admin.email)
        return admin


auth_service = AuthService()
