from fastapi import Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader
import os

from quest_engine.constants import DEFAULT_API_KEY

# Shared secret held by the gateway in front of this service. The gateway
# authenticates users and forwards their ID in X-User-Id, which is trusted only
# on requests carrying this key.
API_KEY = os.getenv("QUEST_ENGINE_API_KEY", DEFAULT_API_KEY)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)):
    """Verify API key for authentication"""
    if not api_key or api_key != API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key"
        )
    return api_key


async def get_current_user_id(x_user_id: str = Header(None)) -> int:
    """Read the authenticated caller's user ID from X-User-Id"""
    if not x_user_id or not x_user_id.isdigit() or int(x_user_id) < 1:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid X-User-Id header"
        )
    return int(x_user_id)
