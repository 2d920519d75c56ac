"""
Appwrite bearer-token handling.

The access-control engine never issues identities itself. It trusts the
Appwrite session behind the bearer token and reads the staff member it names.
"""
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import HTTPException, status
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from ward_access.core import config
from ward_access.utils import get_logger


log = get_logger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AppwriteClient:
    """Lazily built server-side Appwrite client, shared by every request."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._instance is None:
            client = Client()
            client.set_endpoint(config.APPWRITE_ENDPOINT)
            client.set_project(config.APPWRITE_PROJECT_ID)
            client.set_key(config.APPWRITE_API_KEY)
            cls._instance = client
        return cls._instance


@dataclass(frozen=True)
class AppwriteProfile:
    """The parts of an Appwrite account the local user record keeps."""
    appwrite_id: str
    email: str
    name: str


def bearer_subject(token: str) -> str:
    """
    Appwrite user id carried by a session JWT.

    Appwrite signs the token; expiry is checked here and the account itself
    is confirmed against Appwrite on first sight.

    Raises:
        HTTPException: 401 if the token is expired, malformed or has no user id
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        log.info("Rejected bearer token: %s", e)
        raise _unauthorized(f"Invalid token: {e}")

    subject = payload.get("userId")
    if not subject:
        raise _unauthorized("Invalid token payload")
    return subject


async def fetch_appwrite_profile(appwrite_id: str) -> AppwriteProfile:
    """
    Look an account up in Appwrite.

    Raises:
        HTTPException: 401 if Appwrite does not know the account
    """
    try:
        account = Users(AppwriteClient.get_client()).get(appwrite_id)
    except AppwriteException as e:
        log.warning("Appwrite lookup failed for %s: %s", appwrite_id, e)
        raise _unauthorized(f"Failed to verify user: {e}")

    return AppwriteProfile(
        appwrite_id=appwrite_id,
        email=str(account.get("email", "")).strip().lower(),
        name=account.get("name") or "Unknown",
    )
