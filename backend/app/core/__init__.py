from backend.app.core.config import settings
from backend.app.core.database import create_tables, get_session
from backend.app.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)

__all__ = [
    "settings",
    "create_tables",
    "get_session",
    "create_access_token",
    "decode_access_token",
    "get_password_hash",
    "verify_password",
]
