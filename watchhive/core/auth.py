"""Trusted-header identity middleware.

Credentials are verified by the upstream auth proxy, which forwards the
verified identity as X-User-Id / X-User-Email / X-User-Role headers.
The core trusts that identity unconditionally.
"""

import logging

import requests
from fastapi import HTTPException, Request
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from watchhive.core.config import get_settings
from watchhive.core.errors import UpstreamFetchError

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_EMAIL_HEADER = "X-User-Email"
USER_ROLE_HEADER = "X-User-Role"


class AuthUser(BaseModel):
    """A verified identity supplied by the auth collaborator."""

    user_id: str
    email: str | None = None
    role: str = "authenticated"


class TrustedIdentityMiddleware(BaseHTTPMiddleware):
    """Attach the forwarded identity (if any) to ``request.state.user``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
        if user_id:
            request.state.user = AuthUser(
                user_id=user_id,
                email=request.headers.get(USER_EMAIL_HEADER),
                role=request.headers.get(USER_ROLE_HEADER) or "authenticated",
            )
        else:
            request.state.user = None
        return await call_next(request)


def get_current_user(request: Request) -> AuthUser:
    """Dependency returning the authenticated user, or 401."""
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


class IdentityClient:
    """Talks to the auth collaborator's admin API."""

    def __init__(
        self,
        admin_url: str | None,
        service_key: str | None,
        timeout: float = 5.0,
    ) -> None:
        self.admin_url = admin_url
        self.service_key = service_key
        self.timeout = timeout

    def delete_identity(self, user_id: str) -> None:
        """Delete the auth identity for ``user_id``."""
        if not self.admin_url or not self.service_key:
            logger.warning(
                "Auth admin API not configured; identity %s left in place", user_id
            )
            return

        try:
            response = requests.delete(
                f"{self.admin_url}/users/{user_id}",
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.error("Failed to delete auth identity %s: %s", user_id, exc)
            raise UpstreamFetchError(
                f"Failed to delete auth identity {user_id}", exc
            ) from exc


def get_identity_client() -> IdentityClient:
    """Dependency providing the auth admin client."""
    settings = get_settings()
    key = settings.auth_service_key
    return IdentityClient(
        admin_url=settings.auth_admin_url,
        service_key=key.get_secret_value() if key else None,
        timeout=settings.metadata_timeout,
    )
