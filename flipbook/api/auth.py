"""Authentication for the magazine admin API: bcrypt passwords and HS256 JWTs."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
import jwt
from fastapi import HTTPException, status

from .storage import MagazineDatabase

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_EXPIRES_IN_SECONDS = 7 * 24 * 60 * 60
TOKEN_COOKIE = "token"
BCRYPT_ROUNDS = 12


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # malformed hash in the database
        return False


def extract_token(authorization: Optional[str], cookie: Optional[str]) -> Optional[str]:
    """Pick the token from an ``Authorization: Bearer`` header, else the cookie."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return cookie or None


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user["id"],
        "email": user["email"],
        "role": user.get("role") or "admin",
        "created_at": user.get("created_at"),
    }


class AuthService:
    """Issues and validates login tokens against the user table."""

    def __init__(self, db: MagazineDatabase, secret: str):
        self._db = db
        self._secret = secret

    def login(self, email: str, password: str) -> Tuple[str, Dict[str, Any]]:
        """Validate credentials.

        Returns:
            (token, public user)

        Raises:
            HTTPException: 400 when a field is missing, 401 on bad credentials
        """
        if not email or not password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email and password are required.",
            )
        user = self._db.get_user_by_email(email)
        if not user or not verify_password(password, user["password_hash"]):
            logger.info(f"Failed login for {email.lower().strip()}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials.")
        return self.create_token(user), public_user(user)

    def create_token(self, user: Dict[str, Any]) -> str:
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": user["id"],
            "email": user["email"],
            "role": user.get("role") or "admin",
            "exp": issued_at + timedelta(seconds=TOKEN_EXPIRES_IN_SECONDS),
            "iat": issued_at,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def validate_token(self, token: Optional[str]) -> Dict[str, Any]:
        """Decode ``token`` and return the user it belongs to.

        Raises:
            HTTPException: 401 when the token is missing, invalid or expired,
                or its user no longer exists
        """
        if not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated.")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired.") from e
        except jwt.PyJWTError as e:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token.") from e

        user = self._db.get_user_by_id(payload.get("sub", ""))
        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User no longer exists.")
        return user

    def change_password(self, user: Dict[str, Any], current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user["password_hash"]):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect.")
        self._db.update_password(user["id"], hash_password(new_password))
        logger.info(f"Password changed for {user['email']}")
