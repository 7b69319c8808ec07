"""Low-level HTTP client for the Appmixer API.

Handles session bootstrap, bearer authentication, and HTTP operations.
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import jwt
import requests

from .exceptions import AppmixerAPIError, AppmixerTransportError, AuthenticationError

REQUEST_TIMEOUT = 10
ADMIN_SCOPE = "admin"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """Authenticated context shared by every API call.

    Created once by :func:`authenticate` and passed explicitly to
    :class:`AppmixerClient`. Never refreshed: an expired token surfaces as a
    401 from the API.
    """
    base_url: str
    token: str
    user_id: str = ""
    username: str = ""
    email: str = ""
    scope: frozenset = field(default_factory=frozenset)
    token_expires_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        """Observability only - permission checks go through appmixer_sync.core.rbac."""
        return ADMIN_SCOPE in self.scope


def _token_expiry(token: str) -> Optional[datetime]:
    """Return the ``exp`` claim of a JWT token, or None for opaque tokens."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def authenticate(api_url: str, email: str, password: str, timeout: float = REQUEST_TIMEOUT) -> Session:
    """Exchange credentials for a token and the caller's identity.

    Args:
        api_url: Appmixer API base URL
        email: Login email
        password: Login password
        timeout: Request timeout in seconds

    Returns:
        Populated Session

    Raises:
        AuthenticationError: On missing credentials, transport failure or any
            status other than 200
    """
    if not api_url:
        raise AuthenticationError("api_url is required")
    if not email or not password:
        raise AuthenticationError("email and password are required")

    base_url = api_url.rstrip("/")
    url = f"{base_url}/user/auth"
    try:
        resp = requests.request(
            "POST",
            url,
            json={"email": email, "password": password},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise AuthenticationError(f"authentication request failed: {exc}") from exc

    if resp.status_code != 200:
        raise AuthenticationError(
            f"authentication failed with status {resp.status_code}: {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )

    try:
        payload = resp.json()
    except ValueError as exc:
        raise AuthenticationError(f"authentication response is not valid JSON: {exc}", 200, resp.text) from exc
    if not isinstance(payload, dict):
        raise AuthenticationError("authentication response is not a JSON object", 200, resp.text)

    user = payload.get("user") or {}
    token = payload.get("token") or ""
    session = Session(
        base_url=base_url,
        token=token,
        user_id=user.get("id") or "",
        username=user.get("username") or "",
        email=user.get("email") or email,
        scope=frozenset(user.get("scope") or []),
        token_expires_at=_token_expiry(token) if token else None,
    )

    if not session.is_admin:
        logger.warning("User %s does not have admin scope. Some operations will fail.", session.user_id)
    logger.info("Successfully authenticated user_id=%s is_admin=%s", session.user_id, session.is_admin)
    return session


class AppmixerClient:
    """HTTP client for the Appmixer API bound to one Session.

    Usage:
        session = authenticate("https://api.appmixer.example", "me@example.com", "secret")
        client = AppmixerClient(session)
        users = client.get("/users", params={"pattern": "alice"})
    """

    def __init__(self, session: Session, timeout: float = REQUEST_TIMEOUT):
        """Initialize Appmixer client.

        Args:
            session: Authenticated session
            timeout: Per-request timeout in seconds
        """
        self.session = session
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return self.session.base_url

    def execute(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """Execute an authenticated request and return the raw response body.

        Args:
            method: HTTP method
            path: API endpoint path (e.g., "/users/123")
            body: JSON-serializable payload, omitted when None
            params: Query parameters

        Returns:
            Raw response body

        Raises:
            AppmixerAPIError: On a status outside [200, 300)
            AppmixerTransportError: On network failure
        """
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {}
        data = None
        if body is not None:
            data = json.dumps(body)
            headers["Content-Type"] = "application/json"
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"

        logger.debug("Making API request method=%s url=%s", method, url)
        try:
            resp = requests.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AppmixerTransportError(f"{method} {url} failed: {exc}") from exc

        content = resp.content or b""
        if not 200 <= resp.status_code < 300:
            self._handle_error(method, url, resp.status_code, content)
        return content

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute GET request and decode the JSON response."""
        return self._decode(self.execute("GET", path, params=params), "GET", path)

    def post(self, path: str, json: Optional[Any] = None) -> Any:
        """Execute POST request and decode the JSON response."""
        return self._decode(self.execute("POST", path, body=json), "POST", path)

    def put(self, path: str, json: Optional[Any] = None) -> Any:
        """Execute PUT request and decode the JSON response."""
        return self._decode(self.execute("PUT", path, body=json), "PUT", path)

    def delete(self, path: str) -> Any:
        """Execute DELETE request and decode the JSON response."""
        return self._decode(self.execute("DELETE", path), "DELETE", path)

    @staticmethod
    def _decode(content: bytes, method: str, path: str) -> Any:
        if not content.strip():
            return None
        try:
            return json.loads(content)
        except ValueError as exc:
            raise AppmixerTransportError(f"failed to parse {method} {path} response: {exc}") from exc

    def _handle_error(self, method: str, url: str, status_code: int, content: bytes) -> None:
        """Centralized error handling for non-2xx responses.

        Raises:
            AppmixerAPIError: Always, with the best message found in the body
        """
        text = content.decode("utf-8", errors="replace")
        logger.error(
            "API request failed status_code=%s response=%s method=%s url=%s",
            status_code, text, method, url,
        )

        message = ""
        try:
            error_obj = json.loads(text)
        except ValueError:
            error_obj = None
        if isinstance(error_obj, dict):
            if "message" in error_obj:
                message = str(error_obj["message"])
            elif "error" in error_obj:
                message = str(error_obj["error"])

        raise AppmixerAPIError(status_code, message or text, url, method, content)
