"""Named, typed configuration variables that can be loaded from YAML."""

from __future__ import annotations

import itertools
import logging
import string
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

import yaml

_log = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[Any, Any], None]

_LOOKUP_CHARS = frozenset(string.ascii_letters + string.digits + "._")
_YAML_KEY_CHARS = frozenset(string.ascii_lowercase + string.digits + "._")

_listener_ids = itertools.count(1)
_listener_ids_lock = threading.Lock()


def _next_listener_id() -> int:
    with _listener_ids_lock:
        return next(_listener_ids)


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _plain(value: Any) -> Any:
    """Turn nested containers into lists and string-keyed dicts for dumping."""
    if isinstance(value, dict):
        return {_scalar_text(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        items = [_plain(item) for item in value]
        try:
            return sorted(items)
        except TypeError:
            return items
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        dumped = yaml.safe_dump(_plain(value), default_flow_style=False, sort_keys=True)
        return dumped.rstrip("\n")
    return _scalar_text(value)


def _coerce(value: Any, template: Any) -> Any:
    """Convert a parsed YAML value to the type of ``template``."""
    if isinstance(template, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise ValueError(f"cannot convert {value!r} to bool")
    if isinstance(template, int):
        if isinstance(value, bool):
            raise ValueError(f"cannot convert {value!r} to int")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            return int(value.strip())
        raise ValueError(f"cannot convert {value!r} to int")
    if isinstance(template, float):
        if isinstance(value, bool):
            raise ValueError(f"cannot convert {value!r} to float")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
        raise ValueError(f"cannot convert {value!r} to float")
    if isinstance(template, str):
        if isinstance(value, (dict, list)):
            return _to_text(value)
        return _scalar_text(value)
    if isinstance(template, (list, tuple, set, frozenset)):
        if value is None:
            value = []
        if not isinstance(value, list):
            raise ValueError(f"expected a sequence, got {value!r}")
        element = next(iter(template), None)
        items = [item if element is None else _coerce(item, element) for item in value]
        return type(template)(items)
    if isinstance(template, dict):
        if value is None:
            value = {}
        if not isinstance(value, dict):
            raise ValueError(f"expected a mapping, got {value!r}")
        element = next(iter(template.values()), None)
        return {
            _scalar_text(key): item if element is None else _coerce(item, element)
            for key, item in value.items()
        }
    if isinstance(value, type(template)):
        return value
    raise ValueError(f"cannot convert {value!r} to {type(template).__name__}")


class ConfigVarBase(ABC):
    """A named configuration entry; the name is kept in lower case."""

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name.lower()
        self.description = description

    @abstractmethod
    def to_string(self) -> str:
        """The value as text."""

    @abstractmethod
    def from_string(self, text: str) -> None:
        """Set the value from text; raise ValueError if it does not convert."""

    @property
    @abstractmethod
    def type_name(self) -> str:
        """Name of the value's type."""


class ConfigVar(ConfigVarBase, Generic[T]):
    """A configuration value of a fixed type with change listeners."""

    def __init__(self, name: str, default: T, description: str = "") -> None:
        super().__init__(name, description)
        self._template = default
        self._type = type(default)
        self._value = default
        self._lock = threading.RLock()
        self._listeners: dict[int, Listener] = {}

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        if new_value == self._value:
            return
        with self._lock:
            callbacks = list(self._listeners.values())
        for callback in callbacks:
            callback(self._value, new_value)
        self._value = new_value

    @property
    def type_name(self) -> str:
        return self._type.__name__

    def to_string(self) -> str:
        return _to_text(self._value)

    def from_string(self, text: str) -> None:
        if isinstance(self._template, str):
            self.value = text
            return
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"{self.name}: invalid YAML {text!r}") from exc
        try:
            converted = _coerce(parsed, self._template)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"{self.name}: cannot convert {text!r} to {self.type_name}: {exc}"
            ) from exc
        self.value = converted

    def add_listener(self, callback: Listener) -> int:
        """Register ``callback(old, new)``; returns a key to remove it with."""
        key = _next_listener_id()
        with self._lock:
            self._listeners[key] = callback
        return key

    def del_listener(self, key: int) -> None:
        with self._lock:
            self._listeners.pop(key, None)

    def get_listener(self, key: int) -> Optional[Listener]:
        with self._lock:
            return self._listeners.get(key)

    def clear_listener(self) -> None:
        with self._lock:
            self._listeners.clear()


def _members(prefix: str, node: Any) -> Iterator[tuple[str, Any]]:
    if set(prefix) - _YAML_KEY_CHARS:
        _log.error("Config invalid name: %s", prefix)
        return
    yield prefix, node
    if isinstance(node, dict):
        for key, child in node.items():
            key_text = _scalar_text(key)
            yield from _members(f"{prefix}.{key_text}" if prefix else key_text, child)


class Config:
    """The process-wide registry of configuration variables."""

    _vars: dict[str, ConfigVarBase] = {}
    _lock = threading.RLock()

    @classmethod
    def lookup(cls, name: str, default: T, description: str = "") -> ConfigVar[T]:
        """Return the variable ``name``, creating it with ``default`` if absent.

        Raises TypeError if it exists with another type and ValueError if the
        name holds characters other than letters, digits, '.' and '_'.
        """
        with cls._lock:
            existing = cls._vars.get(name)
            if existing is not None:
                if isinstance(existing, ConfigVar) and existing._type is type(default):
                    return existing
                raise TypeError(
                    f"config {name} exists with type {existing.type_name}, "
                    f"not {type(default).__name__}"
                )
            if set(name) - _LOOKUP_CHARS:
                raise ValueError(name)
            var: ConfigVar[T] = ConfigVar(name, default, description)
            cls._vars[name] = var
            return var

    @classmethod
    def find(cls, name: str) -> Optional[ConfigVar]:
        """The typed variable registered as ``name``, or None."""
        with cls._lock:
            var = cls._vars.get(name)
        return var if isinstance(var, ConfigVar) else None

    @classmethod
    def lookup_base(cls, name: str) -> Optional[ConfigVarBase]:
        """Any variable registered as ``name``, or None."""
        with cls._lock:
            return cls._vars.get(name)

    @classmethod
    def load_from_yaml(cls, root: Any) -> None:
        """Set every registered variable named by a dotted path in ``root``.

        Values that do not convert are logged and left unchanged.
        """
        for key, node in list(_members("", root)):
            if not key:
                continue
            var = cls.lookup_base(key.lower())
            if var is None:
                continue
            text = _to_text(node) if isinstance(node, (dict, list)) else _scalar_text(node)
            try:
                var.from_string(text)
            except ValueError as exc:
                _log.error("Config.load_from_yaml %s: %s", key, exc)

    @classmethod
    def load_from_yaml_text(cls, text: str) -> None:
        """Parse ``text`` as YAML and load it like :meth:`load_from_yaml`."""
        try:
            root = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML: {exc}") from exc
        cls.load_from_yaml(root)