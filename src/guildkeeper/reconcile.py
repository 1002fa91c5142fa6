"""Keep one chat message in sync with locally computed desired state.

A plugin that owns a message (the schedule post, the reaction-role post)
hands the desired ``content`` and ``embed`` to
:meth:`ManagedMessage.reconcile` on every pass. The id of the message is
remembered in the metastore under :data:`MESSAGE_ID_KEY`, so the same
message is edited across restarts instead of a new one being posted.

A pass ends in one of three ways:

* no remembered id, or the remembered message is gone -> a new message is
  sent and its id stored (:attr:`ReconcileResult.CREATED`);
* the message exists but differs -> it is edited in place, the id stays
  the same and the store is not written (:attr:`ReconcileResult.UPDATED`);
* the message already matches -> nothing is sent
  (:attr:`ReconcileResult.UNCHANGED`).

Equality ignores the embed timestamp and whitespace around the content.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Optional

from guildkeeper.chat.base import ChatPlatform
from guildkeeper.chat.models import Embed, Message
from guildkeeper.exceptions import NotFoundError
from guildkeeper.metastore import MetaStore

logger = logging.getLogger(__name__)

MESSAGE_ID_KEY = "message_id"


class ReconcileResult(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def embed_fingerprint(embed: Optional[Embed]) -> Optional[dict[str, Any]]:
    """Project *embed* onto the fields that decide equality.

    Everything except ``timestamp`` is kept; optional sub-objects stay
    ``None`` when absent and the field list keeps its order.
    """
    if embed is None:
        return None
    return embed.model_dump(exclude={"timestamp"})


def embeds_equal(a: Optional[Embed], b: Optional[Embed]) -> bool:
    return embed_fingerprint(a) == embed_fingerprint(b)


def message_matches(message: Message, content: str, embed: Optional[Embed]) -> bool:
    """Whether *message* already shows *content* and *embed*."""
    if message.content.strip() != content.strip():
        return False

    current = message.embeds[0] if message.embeds else None
    if len(message.embeds) > 1:
        return False
    return embeds_equal(current, embed)


class ManagedMessage:
    """One message in *channel_id* owned by plugin *plugin_id*.

    Passes are serialised per instance. The remembered id is read under the
    metastore lock, but all network calls happen after the lock is released.

    Args:
        chat: Chat platform used to fetch, send and edit.
        store: Metastore holding the remembered id.
        plugin_id: Key of the owning plugin in the metastore.
        channel_id: Channel the message lives in.
    """

    def __init__(
        self, chat: ChatPlatform, store: MetaStore, plugin_id: str, channel_id: str
    ) -> None:
        self.chat = chat
        self.store = store
        self.plugin_id = plugin_id
        self.channel_id = channel_id
        self._lock = threading.Lock()

    def remembered_id(self) -> str:
        """The stored message id, or ``""`` when none is remembered."""
        return self.store.read_with_lock(
            self.plugin_id, lambda attrs: attrs.must_string(MESSAGE_ID_KEY, "")
        )

    def current(self) -> Optional[Message]:
        """Fetch the managed message, or ``None`` when it does not exist."""
        message_id = self.remembered_id()
        if not message_id:
            return None
        try:
            return self.chat.get_message(self.channel_id, message_id)
        except NotFoundError:
            return None

    def reconcile(self, content: str, embed: Optional[Embed] = None) -> ReconcileResult:
        """Make the managed message show *content* and *embed*.

        Raises:
            GuildkeeperError: See :meth:`sync`.
        """
        result, _ = self.sync(content, embed)
        return result

    def sync(self, content: str, embed: Optional[Embed] = None) -> tuple[ReconcileResult, Message]:
        """Like :meth:`reconcile`, but also return the message as it now stands.

        The message is the one fetched, edited or sent during the pass, so
        callers need no second fetch.

        Raises:
            GuildkeeperError: Any chat-platform error other than a missing
                message, and metastore write failures, propagate.
        """
        with self._lock:
            message_id = self.remembered_id()
            if message_id:
                try:
                    existing: Optional[Message] = self.chat.get_message(self.channel_id, message_id)
                except NotFoundError:
                    logger.info(
                        "plugin=%s message %s no longer exists, posting a new one",
                        self.plugin_id, message_id,
                    )
                    existing = None

                if existing is not None:
                    if message_matches(existing, content, embed):
                        logger.debug("plugin=%s message %s up to date", self.plugin_id, message_id)
                        return ReconcileResult.UNCHANGED, existing

                    edited = self.chat.edit_message(self.channel_id, message_id, content, embed)
                    logger.info("plugin=%s updated message %s", self.plugin_id, message_id)
                    return ReconcileResult.UPDATED, edited

            message = self.chat.send_message(self.channel_id, content, embed)
            self.store.set(self.plugin_id, MESSAGE_ID_KEY, message.id)
            logger.info("plugin=%s created message %s", self.plugin_id, message.id)
            return ReconcileResult.CREATED, message
