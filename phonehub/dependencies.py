# phonehub/dependencies.py
import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from phonehub import config

logger = logging.getLogger(__name__)

# Security scheme
bearer = HTTPBearer(description="Google ID Token (JWT)")


def get_verified_email(credentials: HTTPAuthorizationCredentials = Depends(bearer)) -> str:
    token = credentials.credentials

    # 1. Check if Client ID is actually loaded
    if not config.GOOGLE_CLIENT_ID:
        logger.error("GOOGLE_CLIENT_ID is not set in environment variables")
        raise HTTPException(status_code=500, detail="Server Configuration Error")

    try:
        # 2. Verify the token
        idinfo = id_token.verify_oauth2_token(
            token, google_requests.Request(), config.GOOGLE_CLIENT_ID
        )
        return idinfo["email"]

    except ValueError as e:
        # 3. Log the specific error (e.g. "Token expired", "Audience mismatch")
        logger.warning("Token validation failed: %s", e)
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}")
    except Exception:
        logger.exception("Unexpected auth error")
        raise HTTPException(status_code=401, detail="Authentication failed")


def require_admin(email: str = Depends(get_verified_email)) -> str:
    """🔒 Only emails listed in ADMIN_EMAILS may manage offers."""
    if email.lower() not in config.ADMIN_EMAILS:
        logger.warning("Non-admin %s tried an admin offer operation", email)
        raise HTTPException(status_code=403, detail="Admin access required")
    return email
