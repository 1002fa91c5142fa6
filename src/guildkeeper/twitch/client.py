"""Retrying Twitch Helix client with app-access-token acquisition.

:class:`TwitchClient` is a small value object holding the app credentials
(and optionally a user token). It layers on top of :mod:`httpx`:

- **Auth injection** -- every request carries ``Client-Id`` and
  ``Authorization: Bearer <token>``. Without a user token, a fresh
  app-access token is fetched through the OAuth2 client-credentials grant
  before *each* request; tokens are not cached between calls.
- **Short deadlines** -- each attempt is bounded by a 2 s timeout.
- **Retry with backoff** -- the public operations retry up to 5 times with
  exponential delay (100 ms, 150 ms, 225 ms, ...). HTTP error statuses are
  retried like network failures unless ``retry_client_errors`` is disabled.
  The last failure is raised wrapped in
  :class:`~guildkeeper.exceptions.RequestFailedError`.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from guildkeeper.exceptions import (
    APIStatusError,
    GuildkeeperError,
    RequestFailedError,
    ResponseDecodeError,
    TransportError,
)
from guildkeeper.twitch.models import (
    AppAccessToken,
    StreamListing,
    StreamSchedule,
    UserListing,
)

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.twitch.tv"
TOKEN_URL = "https://id.twitch.tv/oauth2/token"

REQUEST_LIMIT = 5
"""Attempts per operation, including the first one."""

REQUEST_TIMEOUT = 2.0
"""Deadline in seconds for a single HTTP exchange."""

BACKOFF_INITIAL = 0.1
BACKOFF_MULTIPLIER = 1.5
BACKOFF_MAX = 60.0

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


def _format_rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TwitchClient:
    """Client for the Twitch Helix endpoints used by the plugins.

    Args:
        client_id: Client ID of the registered Twitch application.
        client_secret: Secret of that application, used for the
            client-credentials grant.
        token: Optional user access token. When given it is used as-is and
            no app token is requested.
        retry_client_errors: When ``False``, 4xx responses other than 429
            fail immediately instead of consuming the retry budget.
        transport: Optional :mod:`httpx` transport (tests pass an
            :class:`httpx.MockTransport`).
        sleep: Function used to wait between attempts.

    Example::

        client = TwitchClient("my-client-id", "my-secret")
        schedule = client.get_channel_stream_schedule("12345", start_time=None)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token: str = "",
        *,
        retry_client_errors: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token = token
        self._retry_client_errors = retry_client_errors
        self._transport = transport
        self._sleep = sleep

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def get_channel_stream_schedule(
        self, broadcaster_id: str, start_time: Optional[datetime] = None
    ) -> StreamSchedule:
        """Fetch the stream schedule of *broadcaster_id* from *start_time* on."""
        params: dict[str, Any] = {"broadcaster_id": broadcaster_id}
        if start_time is not None:
            params["start_time"] = _format_rfc3339(start_time)

        return self._with_retry(
            "fetching schedule",
            lambda: self.request("GET", "/helix/schedule", params=params, output=StreamSchedule),
        )

    def get_streams_for_users(self, *logins: str) -> StreamListing:
        """Fetch the live streams of up to 100 users by login name."""
        params: dict[str, Any] = {"first": "100", "user_login": list(logins)}
        return self._with_retry(
            "fetching streams",
            lambda: self.request("GET", "/helix/streams", params=params, output=StreamListing),
        )

    def get_users_by_login(self, *logins: str) -> UserListing:
        """Fetch account details of up to 100 users by login name."""
        params: dict[str, Any] = {"first": "100", "login": list(logins)}
        return self._with_retry(
            "fetching user",
            lambda: self.request("GET", "/helix/users", params=params, output=UserListing),
        )

    # ------------------------------------------------------------------ #
    # Single attempt
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Any = None,
        output: Optional[type[M]] = None,
    ) -> Optional[M]:
        """Perform exactly one API exchange.

        Args:
            method: HTTP method.
            path: Path below :data:`API_BASE_URL` (e.g. ``"/helix/users"``).
            params: Query parameters; list values are sent as repeated keys.
            json_body: Optional JSON request body.
            output: Model to decode the response into. ``None`` skips decoding.

        Returns:
            The decoded model, or ``None`` when *output* is ``None``.

        Raises:
            TransportError: On network / timeout errors.
            APIStatusError: On any status other than 200.
            ResponseDecodeError: If the body does not match *output*.
        """
        token = self._token or self._get_app_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Client-Id": self._client_id,
        }
        url = f"{API_BASE_URL}/{path.lstrip('/')}"

        response = self._send(method, url, params=params, headers=headers, json=json_body)
        if output is None:
            return None
        return self._decode(response, output)

    def _get_app_access_token(self) -> str:
        """Exchange the client credentials for an app access token."""
        response = self._send(
            "POST",
            TOKEN_URL,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "client_credentials",
            },
            headers={"Accept": "application/json"},
        )
        return self._decode(response, AppAccessToken).access_token

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            with httpx.Client(timeout=REQUEST_TIMEOUT, transport=self._transport) as client:
                response = client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url}: {exc}") from exc

        if response.status_code != 200:
            raise APIStatusError(response.status_code, response.text)
        return response

    @staticmethod
    def _decode(response: httpx.Response, output: type[M]) -> M:
        try:
            return output.model_validate_json(response.content)
        except ValidationError as exc:
            raise ResponseDecodeError(f"decoding response: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Retry
    # ------------------------------------------------------------------ #

    def _is_retryable(self, exc: GuildkeeperError) -> bool:
        if self._retry_client_errors or not isinstance(exc, APIStatusError):
            return True
        return not (400 <= exc.status_code < 500) or exc.status_code == 429

    def _with_retry(self, operation: str, fn: Callable[[], T]) -> T:
        """Run *fn* up to :data:`REQUEST_LIMIT` times with exponential backoff."""
        delay = BACKOFF_INITIAL
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except GuildkeeperError as exc:
                if attempt >= REQUEST_LIMIT or not self._is_retryable(exc):
                    raise RequestFailedError(operation, attempt, exc) from exc
                logger.debug(
                    "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                    operation, attempt, REQUEST_LIMIT, delay, exc,
                )
                self._sleep(delay)
                delay = min(delay * BACKOFF_MULTIPLIER, BACKOFF_MAX)
