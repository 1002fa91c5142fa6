"""Durable per-plugin key/value store.

Plugins remember state across restarts here -- most notably the id of the
message they manage (key ``message_id``). All plugins share a single JSON
document::

    {"module_attributes": {"<plugin id>": {"<key>": <value>, ...}, ...}}

Every :meth:`MetaStore.set` rewrites the whole document synchronously. There
is no write batching and no temp-file rename: a crash in the middle of a
write can leave a truncated file, which the next :meth:`MetaStore.load`
reports as :class:`~guildkeeper.exceptions.StoreCorruptError`.

One readers/writer lock guards the document for all plugins. Readers run
concurrently; a writer excludes everyone. The lock is not re-entrant:
calling any :class:`MetaStore` method from inside a
:meth:`~MetaStore.read_with_lock` callback deadlocks as soon as a writer is
waiting.

See Also:
    :class:`~guildkeeper.reconcile.ManagedMessage` -- the main consumer.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from pydantic import BaseModel, Field, ValidationError

from guildkeeper.attributes import AttributeStore
from guildkeeper.exceptions import StoreCorruptError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreDocument(BaseModel):
    """On-disk shape of the metastore."""

    module_attributes: dict[str, dict[str, Any]] = Field(default_factory=dict)


class ReadWriteLock:
    """Many-readers / single-writer lock built on :class:`threading.Condition`.

    Writers wait for active readers to drain; new readers wait while a
    writer holds the lock or is queued, so writers are not starved.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MetaStore:
    """Holds the data stored by plugins and serialises it to one JSON file.

    Use :meth:`load` to create an instance; the constructor is for tests and
    for callers that want to start from an in-memory document.

    Args:
        path: File the document is written to.
        document: Initial content. Defaults to an empty document.

    Example::

        store = MetaStore.load("/var/lib/guildkeeper/store.json")
        store.set("schedule", "message_id", "123")
        mid = store.read_with_lock("schedule", lambda a: a.must_string("message_id", ""))
    """

    def __init__(self, path: str | Path, document: StoreDocument | None = None) -> None:
        self._path = Path(path)
        self._document = document or StoreDocument()
        self._lock = ReadWriteLock()

    @property
    def path(self) -> Path:
        """The filesystem path of the store document."""
        return self._path

    @classmethod
    def load(cls, path: str | Path) -> MetaStore:
        """Read the store document from *path*.

        A missing or empty file yields an empty store that is created on the
        first write.

        Raises:
            StoreCorruptError: If *path* is a directory, cannot be read, or
                does not contain a valid store document.
        """
        path = Path(path)
        if not path.exists():
            logger.debug("No store at %s yet, starting empty", path)
            return cls(path)
        if path.is_dir():
            raise StoreCorruptError(f"store location {path} is a directory")

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreCorruptError(f"reading store {path}: {exc}") from exc

        if not text.strip():
            return cls(path)

        try:
            document = StoreDocument.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise StoreCorruptError(f"decoding store {path}: {exc}") from exc

        return cls(path, document)

    def save(self) -> None:
        """Write the current document to disk."""
        with self._lock.write():
            self._write()

    def _write(self) -> None:
        text = json.dumps(self._document.model_dump(mode="json"), indent=2) + "\n"
        with open(self._path, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())

    def set(self, plugin_id: str, key: str, value: Any) -> None:
        """Store *value* under *key* for *plugin_id* and rewrite the document.

        Raises:
            OSError: If the document cannot be written. The in-memory value
                is kept and will be persisted by the next successful write.
        """
        with self._lock.write():
            self._document.module_attributes.setdefault(plugin_id, {})[key] = value
            self._write()

    def read_with_lock(self, plugin_id: str, fn: Callable[[AttributeStore], T]) -> T:
        """Call *fn* with the attributes stored for *plugin_id* while holding a read lock.

        Plugins without stored data receive an empty store. The return value
        (or exception) of *fn* is passed through.
        """
        with self._lock.read():
            data = self._document.module_attributes.get(plugin_id)
            return fn(AttributeStore(data if data is not None else {}))
