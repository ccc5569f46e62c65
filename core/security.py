import hmac
import hashlib
import time
from typing import Optional

import bcrypt

from core.config import settings
from core.logger import logger


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed hash in the database
        return False


def _sign(data: str) -> str:
    return hmac.new(settings.SECRET_KEY.encode(), data.encode(), hashlib.sha256).hexdigest()


def create_token(user_id: int, issued_at: Optional[int] = None) -> str:
    """
    Create a signed bearer token.
    Format: {user_id}:{timestamp}:{signature}
    """
    timestamp = int(issued_at if issued_at is not None else time.time())
    data = f"{user_id}:{timestamp}"
    return f"{data}:{_sign(data)}"


def verify_token(token: str) -> Optional[int]:
    """Verify a token created by create_token and return the user ID."""
    if not token:
        return None

    parts = token.split(':')
    if len(parts) != 3:
        return None

    user_id_str, timestamp_str, signature = parts
    if not user_id_str.isdigit() or not timestamp_str.isdigit():
        return None

    # Check expiration
    if int(time.time()) - int(timestamp_str) > settings.TOKEN_TTL_SECONDS:
        logger.warning("Token expired", user_id=user_id_str)
        return None

    expected_signature = _sign(f"{user_id_str}:{timestamp_str}")
    if hmac.compare_digest(expected_signature, signature):
        return int(user_id_str)

    logger.warning("Token signature mismatch", user_id=user_id_str)
    return None
