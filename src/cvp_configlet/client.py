"""HTTP transport for the management API.

Owns the session: authentication, cookies and retries of individual
requests. Callers get raw response bodies back and decode them
themselves.
"""
import logging
from typing import Any, Optional

import httpx

from .config.settings import CvpSettings
from .errors import RemoteRejected, TransportFailure
from .utils.connection import with_retry, NOT_SENT_EXCEPTIONS, RETRYABLE_EXCEPTIONS

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login/authenticate.do"
LOGOUT_PATH = "/login/logout.do"


class CvpClient:
    """Authenticated JSON-over-HTTP session with the management API.

    Usage:
        async with CvpClient(settings) as client:
            raw = await client.get("/configlet/getConfigletByName.do", params={"name": "ntp"})
    """

    def __init__(
        self,
        settings: CvpSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._authenticated = False

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=httpx.Timeout(self.settings.timeout),
                verify=self.settings.verify_ssl,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._http

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._client().request(method, path, **kwargs)

    async def _send_with_retry(
        self, method: str, path: str, retry_on: tuple = RETRYABLE_EXCEPTIONS, **kwargs: Any
    ) -> httpx.Response:
        send = with_retry(
            max_attempts=self.settings.retries,
            min_wait=self.settings.retry_min_wait,
            max_wait=self.settings.retry_max_wait,
            exceptions=retry_on,
        )(self._send)
        try:
            return await send(method, path, **kwargs)
        except RETRYABLE_EXCEPTIONS as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportFailure(f"{method} {path} failed: {e}") from e

    async def login(self) -> None:
        """Authenticate and keep the session cookie."""
        logger.info(f"Authenticating to {self.settings.host} as {self.settings.username}")
        resp = await self._send_with_retry(
            "POST",
            LOGIN_PATH,
            json={"userId": self.settings.username, "password": self.settings.get_password()},
        )

        error_code = ""
        error_message = ""
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            error_code = str(body.get("errorCode") or "")
            error_message = body.get("errorMessage") or ""

        if resp.status_code >= 400 and not error_code:
            error_code = f"HTTP {resp.status_code}"
        if error_code:
            self._authenticated = False
            raise RemoteRejected(error_code, error_message or "authentication failed")

        self._authenticated = True
        logger.info(f"Session established with {self.settings.host}")

    async def _request(
        self, method: str, path: str, retry_on: tuple = RETRYABLE_EXCEPTIONS, **kwargs: Any
    ) -> bytes:
        if not self._authenticated:
            await self.login()

        resp = await self._send_with_retry(method, path, retry_on, **kwargs)
        if resp.status_code == 401:
            # Session cookie expired; authenticate once and replay
            logger.info(f"Session expired on {path}, re-authenticating")
            self._authenticated = False
            await self.login()
            resp = await self._send_with_retry(method, path, retry_on, **kwargs)

        if resp.status_code >= 500:
            raise TransportFailure(f"{method} {path} returned HTTP {resp.status_code}")

        logger.debug(f"{method} {path} -> HTTP {resp.status_code}, {len(resp.content)} bytes")
        return resp.content

    async def call(self, payload: Any, path: str) -> bytes:
        """POST a JSON payload and return the raw response body.

        Only connection failures are retried: a request that may have
        reached the server is never sent again.
        """
        return await self._request("POST", path, NOT_SENT_EXCEPTIONS, json=payload)

    async def get(self, path: str, params: Optional[dict] = None) -> bytes:
        """GET a path and return the raw response body."""
        return await self._request("GET", path, params=params)

    async def close(self) -> None:
        """Log out and close the HTTP session."""
        if self._http is None:
            return
        if self._authenticated:
            try:
                await self._http.post(LOGOUT_PATH)
            except httpx.HTTPError as e:
                logger.warning(f"Logout from {self.settings.host} failed: {e}")
        await self._http.aclose()
        self._http = None
        self._authenticated = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
