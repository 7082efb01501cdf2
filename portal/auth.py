"""
Authentication

Bearer-token dependency used by every protected route, plus admin signup.
Each request is re-authenticated against the Supabase identity provider.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Header
from pydantic import BaseModel, Field

from portal import supabase_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def get_current_user(authorization: Optional[str] = Header(None)):
    """Extract and verify user from Supabase JWT token."""
    if not authorization:
        logger.warning("[Auth] Authorization header missing")
        raise HTTPException(status_code=401, detail="Authorization header missing")

    # Extract token from "Bearer <token>"
    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("[Auth] Invalid authorization header format")
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    user_data = supabase_client.verify_supabase_token(parts[1])

    if not user_data:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return user_data


class SignupRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


@router.post("/signup")
async def signup(request: SignupRequest):
    """Create a new admin user with a confirmed email."""
    try:
        user = supabase_client.create_user(request.email, request.password, request.name)
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating user during signup: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[Auth] Created user {user['email']}")
    return {"user": user}
