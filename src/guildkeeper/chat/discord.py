"""Discord REST implementation of :class:`~guildkeeper.chat.base.ChatPlatform`.

:class:`DiscordPlatform` wraps one long-lived :class:`httpx.Client` pointed at
the v10 REST API and layers on:

- **Bot auth** -- every request carries ``Authorization: Bot <token>``.
- **Error mapping** -- 404 becomes :class:`~guildkeeper.exceptions.NotFoundError`,
  any other status >= 400 :class:`~guildkeeper.exceptions.APIStatusError`,
  network failures :class:`~guildkeeper.exceptions.TransportError`.
- **Rate-limit retry** -- a 429 is retried after the ``retry_after`` the
  API asks for, a bounded number of times.

The gateway (websocket) side is not handled here; a gateway client feeds
events in through :meth:`~guildkeeper.chat.base.ChatPlatform.dispatch`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from guildkeeper.chat.base import ChatPlatform
from guildkeeper.chat.models import Embed, Guild, Member, Message, User
from guildkeeper.exceptions import APIStatusError, NotFoundError, TransportError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://discord.com/api/v10"
REQUEST_TIMEOUT = 10.0
RATE_LIMIT_RETRIES = 3


def _embeds_payload(embed: Optional[Embed]) -> list[dict[str, Any]]:
    if embed is None:
        return []
    return [embed.model_dump(mode="json", exclude_none=True)]


class DiscordPlatform(ChatPlatform):
    """Chat platform backed by the Discord REST API.

    Only the REST side is implemented. :attr:`delivers_events` stays
    ``False``: presence and reaction events need a gateway client that
    calls :meth:`dispatch`.

    Args:
        token: Bot token.
        transport: Optional :mod:`httpx` transport (tests pass an
            :class:`httpx.MockTransport`).
        sleep: Function used to wait out rate limits.

    Example::

        chat = DiscordPlatform(config.bot_token)
        chat.open()
        chat.send_message("1234", "hello")
    """

    def __init__(
        self,
        token: str,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__()
        self._token = token
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None
        self._bot_user: Optional[User] = None

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def open(self) -> None:
        self._client = httpx.Client(
            base_url=API_BASE_URL,
            timeout=REQUEST_TIMEOUT,
            headers={"Authorization": f"Bot {self._token}"},
            transport=self._transport,
        )
        self._bot_user = User.model_validate(self._request("GET", "/users/@me"))
        logger.info("Authenticated as %s (%s)", self._bot_user.username, self._bot_user.id)

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    @property
    def bot_user_id(self) -> str:
        return self._bot_user.id if self._bot_user else ""

    def guild(self, guild_id: str) -> Guild:
        return Guild.model_validate(self._request("GET", f"/guilds/{guild_id}"))

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #

    def list_recent_messages(
        self, channel_id: str, limit: int, after: Optional[str] = None
    ) -> list[Message]:
        params: dict[str, Any] = {"limit": limit}
        if after is not None:
            params["after"] = after
        data = self._request("GET", f"/channels/{channel_id}/messages", params=params)
        return [Message.model_validate(item) for item in data or []]

    def get_message(self, channel_id: str, message_id: str) -> Message:
        data = self._request("GET", f"/channels/{channel_id}/messages/{message_id}")
        return Message.model_validate(data)

    def send_message(
        self, channel_id: str, content: str, embed: Optional[Embed] = None
    ) -> Message:
        body = {"content": content, "embeds": _embeds_payload(embed)}
        data = self._request("POST", f"/channels/{channel_id}/messages", json_body=body)
        return Message.model_validate(data)

    def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: str,
        embed: Optional[Embed] = None,
    ) -> Message:
        body = {"content": content, "embeds": _embeds_payload(embed)}
        data = self._request(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", json_body=body
        )
        return Message.model_validate(data)

    def delete_message(self, channel_id: str, message_id: str) -> None:
        self._request("DELETE", f"/channels/{channel_id}/messages/{message_id}")

    def crosspost_message(self, channel_id: str, message_id: str) -> Message:
        data = self._request(
            "POST", f"/channels/{channel_id}/messages/{message_id}/crosspost"
        )
        return Message.model_validate(data)

    # ------------------------------------------------------------------ #
    # Reactions
    # ------------------------------------------------------------------ #

    def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        self._request(
            "PUT",
            f"/channels/{channel_id}/messages/{message_id}/reactions/{quote(emoji, safe=':')}/@me",
        )

    def remove_reaction_emoji(self, channel_id: str, message_id: str, emoji: str) -> None:
        self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}/reactions/{quote(emoji, safe=':')}",
        )

    # ------------------------------------------------------------------ #
    # Members and roles
    # ------------------------------------------------------------------ #

    def get_member(self, guild_id: str, user_id: str) -> Member:
        return Member.model_validate(self._request("GET", f"/guilds/{guild_id}/members/{user_id}"))

    def add_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        self._request("PUT", f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}")

    def remove_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        self._request("DELETE", f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Any = None,
    ) -> Any:
        """Send one request, waiting out rate limits, and return the decoded body.

        Returns:
            The JSON body, or ``None`` for empty (204) responses.

        Raises:
            NotFoundError: On 404.
            APIStatusError: On any other status >= 400.
            TransportError: On network / timeout errors.
        """
        if self._client is None:
            raise TransportError("Discord session is not open")

        kwargs: dict[str, Any] = {"params": params}
        if json_body is not None:
            kwargs["json"] = json_body

        for attempt in range(RATE_LIMIT_RETRIES + 1):
            try:
                response = self._client.request(method, path, **kwargs)
            except httpx.HTTPError as exc:
                raise TransportError(f"{method} {path}: {exc}") from exc

            if response.status_code == 429 and attempt < RATE_LIMIT_RETRIES:
                delay = self._retry_after(response)
                logger.debug(
                    "Rate limited on %s %s, retrying in %.2fs (attempt %d/%d)",
                    method, path, delay, attempt + 1, RATE_LIMIT_RETRIES,
                )
                self._sleep(delay)
                continue
            break

        self._map_response_error(method, path, response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        try:
            return float(response.json().get("retry_after", 1.0))
        except (ValueError, AttributeError):
            return float(response.headers.get("Retry-After", 1.0))

    @staticmethod
    def _map_response_error(method: str, path: str, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return
        if status == 404:
            raise NotFoundError(f"{method} {path}: not found")
        raise APIStatusError(status, response.text[:200])
