"""Remote configuration document with typed property accessors."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_ATOI = re.compile(r"[+-]?[0-9]+")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1
_NOT_TEXTUAL = (bool, int, float, complex, list, tuple, dict, set, frozenset)


class KeyNotFoundError(LookupError):
    """Raised when a property key does not exist."""


class WrongTypeError(TypeError):
    """Raised when a property has a type that cannot serve the requested one."""


class ConversionError(ValueError):
    """Raised when a string property cannot be parsed into the requested type."""


def _type_name(value: Any) -> str:
    return type(value).__name__


@dataclass
class Config:
    """A versioned set of configuration properties."""

    version: str = ""
    properties: dict[str, Any] = field(default_factory=dict)

    def _lookup(self, key: str) -> Any:
        try:
            return self.properties[key]
        except KeyError:
            raise KeyNotFoundError(f"key not found: {key}") from None

    def get_string(self, key: str) -> str:
        """Return the property as a string; bytes are decoded, objects with ``__str__`` rendered."""
        value = self._lookup(key)
        if isinstance(value, str):
            return value
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        if value is not None and not isinstance(value, _NOT_TEXTUAL) and type(value).__str__ is not object.__str__:
            return str(value)
        raise WrongTypeError(f"wrong type for key: expected string but got {_type_name(value)}")

    def get_int(self, key: str) -> int:
        """Return the property as an integer; floats are truncated, strings parsed."""
        value = self._lookup(key)
        if isinstance(value, bool):
            raise WrongTypeError(f"wrong type for key: expected int but got {_type_name(value)}")
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            try:
                return int(value)
            except (OverflowError, ValueError) as exc:
                raise ConversionError(f"cannot convert float to int: {exc}") from exc
        if isinstance(value, str):
            if not _ATOI.fullmatch(value):
                raise ConversionError(f'cannot convert string to int: invalid syntax "{value}"')
            number = int(value)
            if not _INT_MIN <= number <= _INT_MAX:
                raise ConversionError(f'cannot convert string to int: value out of range "{value}"')
            return number
        raise WrongTypeError(f"wrong type for key: expected int but got {_type_name(value)}")

    def get_bool(self, key: str) -> bool:
        """Return the property as a boolean; accepts true/1/yes and false/0/no strings."""
        value = self._lookup(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            if value in ("true", "1", "yes"):
                return True
            if value in ("false", "0", "no"):
                return False
            raise ConversionError(f"cannot convert string to bool: {value}")
        raise WrongTypeError(f"wrong type for key: expected bool but got {_type_name(value)}")

    def get_float(self, key: str) -> float:
        """Return the property as a float; integers are widened, strings parsed."""
        value = self._lookup(key)
        if isinstance(value, float):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            if value != value.strip() or "_" in value:
                raise ConversionError(f'cannot convert string to float64: invalid syntax "{value}"')
            try:
                return float(value)
            except ValueError as exc:
                raise ConversionError(f'cannot convert string to float64: invalid syntax "{value}"') from exc
        raise WrongTypeError(f"wrong type for key: expected float64 but got {_type_name(value)}")

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form of the configuration."""
        return {"version": self.version, "properties": dict(self.properties)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Config":
        """Build a configuration from its decoded JSON form."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"config must be a JSON object, got {_type_name(data)}")
        version = data.get("version")
        if version is None:
            version = ""
        if not isinstance(version, str):
            raise ValueError(f"config version must be a string, got {_type_name(version)}")
        properties = data.get("properties")
        if properties is None:
            properties = {}
        if not isinstance(properties, Mapping):
            raise ValueError(f"config properties must be a JSON object, got {_type_name(properties)}")
        return cls(version=version, properties=dict(properties))