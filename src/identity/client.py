"""
Identity service client.

Thin async wrapper over a GoTrue-compatible auth API:
- Password sign-in / sign-up / sign-out for end users
- Current-user lookup from an access token
- Admin user directory operations (service-role key)

Every non-success response raises IdentityError carrying the service's
human-readable message, except get_current_user, which reports an
invalid or expired token as None.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from src.core.config import settings
from src.core.exceptions import ConfigurationError, IdentityError
from src.domain.models.account import AuthSession, User

log = structlog.get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"Identity service returned HTTP {response.status_code}"


def _parse_user(data: Dict[str, Any]) -> User:
    return User(
        id=data["id"],
        email=data.get("email"),
        created_at=data.get("created_at"),
        last_sign_in_at=data.get("last_sign_in_at"),
    )


class IdentityGateway:
    """Async client for the identity service.

    Args:
        base_url: Service root, e.g. https://project.example.co/auth/v1
        api_key: Public key sent as the apikey header on every call
        service_role_key: Key for /admin endpoints; admin calls fail without it
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        service_role_key: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.service_role_key = service_role_key
        self.timeout = timeout

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _admin_headers(self) -> Dict[str, str]:
        if not self.service_role_key:
            raise ConfigurationError(
                "AUTH_SERVICE_ROLE_KEY not configured. Admin operations are unavailable."
            )
        headers = self._headers(bearer=self.service_role_key)
        headers["apikey"] = self.service_role_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=headers,
                    json=json,
                    params=params,
                )
        except httpx.HTTPError as e:
            log.error("identity_request_failed", path=path, error=str(e))
            raise IdentityError(
                "Identity service is unreachable", status_code=503
            ) from e

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code >= 400:
            message = _error_message(response)
            log.warning(
                "identity_request_rejected",
                operation=operation,
                status_code=response.status_code,
                message=message,
            )
            raise IdentityError(message, status_code=400)

    # ------------------------------------------------------------------
    # End-user operations
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange email and password for an access token.

        Raises:
            IdentityError: Bad credentials or unconfirmed account
        """
        response = await self._request(
            "POST",
            "/token",
            self._headers(),
            json={"email": email, "password": password},
            params={"grant_type": "password"},
        )
        self._raise_for_status(response, "sign_in")
        data = response.json()
        auth = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            user=_parse_user(data["user"]),
        )
        log.info("user_signed_in", user_id=auth.user.id)
        return auth

    async def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        """Register a new account.

        Returns:
            AuthSession when the service signs the user in immediately, None
            when an email confirmation is pending
        """
        response = await self._request(
            "POST",
            "/signup",
            self._headers(),
            json={"email": email, "password": password},
        )
        self._raise_for_status(response, "sign_up")
        data = response.json()

        if not data.get("access_token"):
            log.info("user_signed_up_pending_confirmation", email=email)
            return None

        auth = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            user=_parse_user(data["user"]),
        )
        log.info("user_signed_up", user_id=auth.user.id)
        return auth

    async def sign_out(self, access_token: str) -> None:
        response = await self._request(
            "POST", "/logout", self._headers(bearer=access_token)
        )
        self._raise_for_status(response, "sign_out")

    async def get_current_user(self, access_token: str) -> Optional[User]:
        """Resolve an access token to its user.

        Returns:
            The user, or None if the token is invalid or expired
        """
        response = await self._request("GET", "/user", self._headers(bearer=access_token))
        if response.status_code in (401, 403):
            return None
        self._raise_for_status(response, "get_current_user")
        return _parse_user(response.json())

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    async def list_users(self) -> List[User]:
        response = await self._request("GET", "/admin/users", self._admin_headers())
        self._raise_for_status(response, "list_users")
        data = response.json()
        users = data.get("users", []) if isinstance(data, dict) else data
        return [_parse_user(u) for u in users]

    async def delete_user(self, user_id: str) -> None:
        response = await self._request(
            "DELETE", f"/admin/users/{user_id}", self._admin_headers()
        )
        self._raise_for_status(response, "delete_user")
        log.info("identity_user_deleted", user_id=user_id)

    async def send_password_reset(self, email: str) -> None:
        response = await self._request(
            "POST", "/recover", self._headers(), json={"email": email}
        )
        self._raise_for_status(response, "send_password_reset")


def get_identity_gateway() -> IdentityGateway:
    """Factory for the identity gateway using AUTH_* settings."""
    return IdentityGateway(
        base_url=settings.auth_url,
        api_key=settings.auth_api_key,
        service_role_key=settings.auth_service_role_key,
        timeout=settings.auth_timeout,
    )
