from __future__ import annotations

import logging

import httpx

from wiserpin.client.errors import TransportError
from wiserpin.client.remote import DEFAULT_HEADERS


logger = logging.getLogger(__name__)

TOKEN_STORAGE_KEY = "wiserpin_session_token"
TOKEN_REFRESH_JOB_ID = "token_refresh"


class CredentialsSession:
    """Identity session that trades stored credentials for session tokens."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.username = username
        self._password = password
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )

    def get_token(self) -> str | None:
        try:
            response = self._client.post(
                "/auth/session-token",
                json={"username": self.username, "password": self._password},
            )
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        if response.status_code == 401:
            logger.warning("Identity service rejected credentials for %s", self.username)
            return None
        response.raise_for_status()
        return response.json().get("token")

    def close(self) -> None:
        self._client.close()


class TokenProvider:
    """Caches the bearer token in local storage and refreshes it on demand."""

    def __init__(self, store, session=None):
        self.store = store
        self.session = session
        self._scheduler = None
        self._interval_minutes = 5

    def get_token(self) -> str | None:
        return self.store.get_item(TOKEN_STORAGE_KEY) or None

    def refresh(self) -> str | None:
        if self.session is None:
            logger.info("No identity session, skipping token refresh")
            return None
        try:
            token = self.session.get_token()
        except (TransportError, httpx.HTTPError) as exc:
            logger.warning("Token refresh failed: %s", exc)
            return None
        if not token:
            logger.warning("Identity session returned no token")
            return None
        self.store.set_item(TOKEN_STORAGE_KEY, token)
        logger.debug("Refreshed session token")
        return token

    def sign_in(self, session) -> str | None:
        if self.session is not None and hasattr(self.session, "close"):
            self.session.close()
        self.session = session
        token = self.refresh()
        if self._scheduler is not None:
            self._arm(self._scheduler, self._interval_minutes)
        return token

    def sign_out(self) -> None:
        if self.session is not None and hasattr(self.session, "close"):
            self.session.close()
        self.session = None
        self.store.remove_item(TOKEN_STORAGE_KEY)
        if self._scheduler is not None and self._scheduler.get_job(
            TOKEN_REFRESH_JOB_ID
        ):
            self._scheduler.remove_job(TOKEN_REFRESH_JOB_ID)
        logger.info("Signed out, cleared cached token")

    def start_refresh_timer(self, scheduler, interval_minutes: int = 5) -> None:
        self._scheduler = scheduler
        self._interval_minutes = interval_minutes
        self._arm(scheduler, interval_minutes)

    def _arm(self, scheduler, interval_minutes: int) -> None:
        if self.session is None:
            return
        scheduler.add_job(
            self.refresh,
            "interval",
            minutes=interval_minutes,
            id=TOKEN_REFRESH_JOB_ID,
            replace_existing=True,
        )
