"""Typed, defaulting accessors over a plugin's attribute bag.

Plugin configuration arrives as an untyped mapping decoded from YAML (or, for
the metastore, from JSON). :class:`AttributeStore` keeps the raw values and
interprets them on read:

* ``get_*`` getters raise :class:`~guildkeeper.exceptions.AttributeNotSetError`
  when the key is absent and
  :class:`~guildkeeper.exceptions.AttributeMismatchError` when the stored
  value has a type the getter cannot use.
* ``must_*`` variants accept an optional ``default`` returned in place of
  any error. Without a default the error propagates: during startup that
  terminates the process, inside a scheduled job or event handler it ends
  the current invocation only (see :mod:`guildkeeper.scheduler`).

Each plugin describes its attributes with a tuple of :class:`AttributeSpec`
entries. :meth:`AttributeStore.resolve` reads a value through its spec,
applying the declared default, and
:func:`required_names` feeds :meth:`AttributeStore.expect`.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Optional, TypeVar

from guildkeeper.exceptions import (
    AttributeListError,
    AttributeMismatchError,
    AttributeNotSetError,
    AttributeValueError,
    ValidationMissingError,
)

T = TypeVar("T")

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration expression such as ``"15m"``, ``"1h30m"`` or ``"-1.5s"``.

    The accepted syntax is a sequence of decimal numbers, each with an
    optional fraction and a unit suffix (``ns``, ``us``, ``ms``, ``s``,
    ``m``, ``h``), optionally preceded by a sign. ``"0"`` is the only value
    allowed without a unit.

    Raises:
        ValueError: If *text* is not a valid duration expression.
    """
    orig = text
    sign = 1.0
    if text[:1] in ("-", "+"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {orig!r}")

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {orig!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    return timedelta(seconds=sign * seconds)


def _has_text_rendering(value: object) -> bool:
    """Whether *value* is a number or its type defines its own ``__str__``.

    Booleans are excluded: ``true`` in YAML is never meant as text.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return type(value).__str__ is not object.__str__


class AttributeKind(str, enum.Enum):
    """The value kinds an attribute can be interpreted as."""

    STRING = "string"
    INT64 = "int64"
    BOOL = "bool"
    DURATION = "duration"
    STRING_LIST = "[]string"


@dataclass(frozen=True)
class AttributeSpec:
    """Declaration of one plugin attribute.

    Attributes:
        name: Key in the plugin's ``attributes`` mapping.
        kind: How the raw value is interpreted.
        required: Whether initialization fails when the key is absent.
        default: Value returned by :meth:`AttributeStore.resolve` when the
            attribute is absent or unusable. ``None`` means no default.
        description: One-line user documentation.
    """

    name: str
    kind: AttributeKind
    required: bool = False
    default: Any = None
    description: str = ""


def required_names(specs: tuple[AttributeSpec, ...]) -> list[str]:
    """Return the names of all required attributes in declaration order."""
    return [spec.name for spec in specs if spec.required]


class AttributeStore(Mapping[str, Any]):
    """Read-only key/value bag with typed accessors.

    The store does not copy its input; callers that hand over a mapping they
    keep mutating (the metastore does, under its own lock) see those changes.

    Example::

        attrs = AttributeStore({"cron": "*/5 * * * *", "entries": 5})
        attrs.get_int64("entries")                      # 5
        attrs.must_string("timezone", default="UTC")    # "UTC"
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Mapping[str, Any] = data if data is not None else {}

    # ------------------------------------------------------------------ #
    # Mapping protocol
    # ------------------------------------------------------------------ #

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"AttributeStore({dict(self._data)!r})"

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def expect(self, *names: str) -> None:
        """Check that every name in *names* is present.

        Raises:
            ValidationMissingError: Listing all missing names in the order
                given, e.g. ``missing key(s) b, c``.
        """
        missing = [name for name in names if name not in self._data]
        if missing:
            raise ValidationMissingError(missing)

    # ------------------------------------------------------------------ #
    # Typed getters
    # ------------------------------------------------------------------ #

    def _raw(self, name: str) -> Any:
        try:
            return self._data[name]
        except KeyError:
            raise AttributeNotSetError(name) from None

    def get_bool(self, name: str) -> bool:
        """Read *name* as a bool (native bool or a boolean string)."""
        value = self._raw(name)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            if value in _TRUE_STRINGS:
                return True
            if value in _FALSE_STRINGS:
                return False
            raise AttributeValueError(
                f"attribute {name!r}: parsing string to bool: invalid syntax {value!r}"
            )
        raise AttributeMismatchError(name, value)

    def get_int64(self, name: str) -> int:
        """Read *name* as an integer. Floats, strings and bools are rejected."""
        value = self._raw(name)
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
        raise AttributeMismatchError(name, value)

    def get_string(self, name: str) -> str:
        """Read *name* as a string (native str or an object with its own ``__str__``)."""
        value = self._raw(name)
        if isinstance(value, str):
            return value
        if _has_text_rendering(value):
            return str(value)
        raise AttributeMismatchError(name, value)

    def get_duration(self, name: str) -> timedelta:
        """Read *name* as a duration expression such as ``"15m"``."""
        text = self.get_string(name)
        try:
            return parse_duration(text)
        except ValueError as exc:
            raise AttributeValueError(f"attribute {name!r}: parsing value: {exc}") from exc

    def get_string_list(self, name: str) -> list[str]:
        """Read *name* as a list of strings.

        Raises:
            AttributeListError: If any element is not a string.
        """
        value = self._raw(name)
        if not isinstance(value, (list, tuple)):
            raise AttributeMismatchError(name, value)

        out: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise AttributeListError(f"attribute {name!r}: value in slice was not string")
            out.append(item)
        return out

    # ------------------------------------------------------------------ #
    # Defaulting variants
    # ------------------------------------------------------------------ #

    @staticmethod
    def _or_default(getter: Callable[[str], T], name: str, default: Optional[T]) -> T:
        try:
            return getter(name)
        except AttributeValueError:
            if default is not None:
                return default
            raise

    def must_bool(self, name: str, default: Optional[bool] = None) -> bool:
        return self._or_default(self.get_bool, name, default)

    def must_int64(self, name: str, default: Optional[int] = None) -> int:
        return self._or_default(self.get_int64, name, default)

    def must_string(self, name: str, default: Optional[str] = None) -> str:
        return self._or_default(self.get_string, name, default)

    def must_duration(self, name: str, default: Optional[timedelta] = None) -> timedelta:
        return self._or_default(self.get_duration, name, default)

    def must_string_list(self, name: str, default: Optional[list[str]] = None) -> list[str]:
        return self._or_default(self.get_string_list, name, default)

    def resolve(self, spec: AttributeSpec) -> Any:
        """Read the attribute described by *spec*, falling back to its default."""
        getter = {
            AttributeKind.BOOL: self.must_bool,
            AttributeKind.INT64: self.must_int64,
            AttributeKind.STRING: self.must_string,
            AttributeKind.DURATION: self.must_duration,
            AttributeKind.STRING_LIST: self.must_string_list,
        }[spec.kind]
        return getter(spec.name, spec.default)
