import os
import logging
from typing import Optional

from supabase import create_client, Client
from dotenv import load_dotenv
from jose import jwt, JWTError

load_dotenv()

logger = logging.getLogger(__name__)

SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")  # Use service role for backend
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY")
DOCUMENTS_BUCKET = os.environ.get("SUPABASE_DOCUMENTS_BUCKET", "client-documents")

_supabase: Optional[Client] = None


def get_supabase() -> Client | None:
    """Get the Supabase client instance, creating it on first use."""
    global _supabase

    if _supabase is not None:
        return _supabase

    if not SUPABASE_URL:
        logger.warning("SUPABASE_URL not set. Supabase features will be disabled.")
        return None

    # Use service role key if available (full access), otherwise anon key
    key_to_use = SUPABASE_KEY or SUPABASE_ANON_KEY
    if not key_to_use:
        logger.warning("No Supabase key found. Supabase features will be disabled.")
        return None

    _supabase = create_client(SUPABASE_URL, key_to_use)
    return _supabase


def read_token_claims(token: str) -> Optional[dict]:
    """
    Decode a JWT without verifying its signature.
    Returns None for anything that is not a JWT carrying a subject.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.info(f"[Auth] Malformed token: {e}")
        return None

    if not claims.get("sub"):
        logger.info("[Auth] No user_id (sub) in decoded token")
        return None
    return claims


def verify_supabase_token(token: str) -> Optional[dict]:
    """
    Verify a Supabase JWT against the identity provider and return the user data.
    Returns None if verification fails.
    """
    if not token:
        return None

    # Cheap local check first so garbage never reaches the provider
    claims = read_token_claims(token)
    if not claims:
        return None

    supabase = get_supabase()
    if not supabase:
        logger.warning("[Auth] Supabase not configured, cannot verify token")
        return None

    try:
        user_response = supabase.auth.get_user(token)
    except Exception as e:
        logger.warning(f"[Auth] Token verification failed: {e}")
        return None

    if not user_response or not user_response.user:
        return None

    user = user_response.user
    return {
        "id": user.id,
        "email": user.email,
        "user_metadata": user.user_metadata or {},
    }


def create_user(email: str, password: str, name: Optional[str] = None) -> dict:
    """
    Create a confirmed user through the provider's admin API.
    Email is auto-confirmed since no mail server is configured.
    Raises RuntimeError when Supabase is not configured; provider errors propagate.
    """
    supabase = get_supabase()
    if not supabase:
        raise RuntimeError("Supabase is not configured")

    response = supabase.auth.admin.create_user({
        "email": email,
        "password": password,
        "user_metadata": {"name": name},
        "email_confirm": True,
    })
    user = response.user
    return {
        "id": user.id,
        "email": user.email,
        "user_metadata": user.user_metadata or {},
    }
