"""
Value models for preference entries
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1
LONG_MIN = -(2**63)
LONG_MAX = 2**63 - 1


class ValueType(Enum):
    # Declared type of a stored value; the tag travels with the ciphertext
    STRING = "string"
    BOOLEAN = "boolean"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    STRING_SET = "string_set"


def _check_integer(value, low, high, kind):
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{kind} value must be an int, got {type(value).__name__}")
    if not low <= value <= high:
        raise ValueError(f"{kind} value out of range: {value}")
    return value


class PrefValue:
    """A typed preference value: the tag plus the cleartext payload."""

    __slots__ = ("type", "value")

    def __init__(self, value_type: ValueType, value: Any):
        self.type = value_type
        self.value = value

    # ------------------------------------------------------------------
    # Constructors, one per supported type. They validate the payload.
    # ------------------------------------------------------------------

    @classmethod
    def of_string(cls, value: str) -> "PrefValue":
        if not isinstance(value, str):
            raise TypeError(f"string value must be a str, got {type(value).__name__}")
        return cls(ValueType.STRING, value)

    @classmethod
    def of_boolean(cls, value: bool) -> "PrefValue":
        if not isinstance(value, bool):
            raise TypeError(f"boolean value must be a bool, got {type(value).__name__}")
        return cls(ValueType.BOOLEAN, value)

    @classmethod
    def of_int(cls, value: int) -> "PrefValue":
        return cls(ValueType.INT, _check_integer(value, INT_MIN, INT_MAX, "int"))

    @classmethod
    def of_long(cls, value: int) -> "PrefValue":
        return cls(ValueType.LONG, _check_integer(value, LONG_MIN, LONG_MAX, "long"))

    @classmethod
    def of_float(cls, value: float) -> "PrefValue":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"float value must be a number, got {type(value).__name__}")
        return cls(ValueType.FLOAT, float(value))

    @classmethod
    def of_string_set(cls, values: Iterable[str]) -> "PrefValue":
        frozen: FrozenSet[str] = frozenset(values)
        for item in frozen:
            if not isinstance(item, str):
                raise TypeError("string set members must be str")
        return cls(ValueType.STRING_SET, frozen)

    # ------------------------------------------------------------------
    # Serialization of the cleartext payload (encrypted by the backend)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        value = sorted(self.value) if self.type is ValueType.STRING_SET else self.value
        return {"t": self.type.value, "v": value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrefValue":
        value_type = ValueType(data["t"])
        builders = {
            ValueType.STRING: cls.of_string,
            ValueType.BOOLEAN: cls.of_boolean,
            ValueType.INT: cls.of_int,
            ValueType.LONG: cls.of_long,
            ValueType.FLOAT: cls.of_float,
            ValueType.STRING_SET: cls.of_string_set,
        }
        return builders[value_type](data["v"])

    def __eq__(self, other):
        if not isinstance(other, PrefValue):
            return NotImplemented
        return self.type is other.type and self.value == other.value

    def __hash__(self):
        return hash((self.type, self.value))

    def __repr__(self):
        return f"PrefValue({self.type.value}, {self.value!r})"
