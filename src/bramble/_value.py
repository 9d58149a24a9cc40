"""Runtime values for the bramble executor."""

__all__ = [
    "Kind",
    "Value",
    "validate",
    "kind_int",
    "kind_float",
    "kind_bool",
    "kind_str",
    "kind_list",
    "kind_set",
    "INT_MIN",
    "INT_MAX",
]

import struct


INT_MIN = -(2**31)
INT_MAX = 2**31 - 1


class Kind:
    """Variant marker for a Value.

    Each kind is a module level singleton, so kinds are compared by
    identity.

    Args:
        name: (str) Name of the variant
        storage: (type) Python type used to hold the data
    """

    __slots__ = ("name", "storage")

    def __init__(self, name, storage):
        self.name = name
        self.storage = storage

    def __repr__(self):
        return f"Kind<{self.name}>"


kind_int = Kind("int", int)
kind_float = Kind("float", float)
kind_bool = Kind("bool", bool)
kind_str = Kind("str", str)
kind_list = Kind("list", tuple)
kind_set = Kind("set", frozenset)

_kinds = (kind_int, kind_float, kind_bool, kind_str, kind_list, kind_set)

# Control characters are written as escapes so formatted strings parse back
_string_escapes = {
    code: f"\\x{code:02x}" for code in (*range(0x20), *range(0x7f, 0xa0))
}
_string_escapes.update({
    ord("\\"): "\\\\", ord('"'): '\\"',
    ord("\n"): "\\n", ord("\r"): "\\r", ord("\t"): "\\t",
})


def _float_bits(number):
    """Raw IEEE-754 bit pattern of a float as an unsigned int."""
    return struct.unpack("<Q", struct.pack("<d", number))[0]


class Value:
    """Bramble runtime value.

    A closed union of int, float, bool, str, list and set. The kind tells
    which variant the value holds, the data is the Python object storing
    it. Lists are stored as tuples and sets as frozensets of Values, so
    every value is immutable and can be shared freely. Collection updates
    like `push` and `insert` build new Values and never touch the
    original.

    Floats compare and hash by their exact bit pattern rather than
    numerically, so `0.0` and `-0.0` differ and a NaN equals itself.

    Args:
        kind: (Kind) Variant of the value
        data: The underlying data
    Attributes:
        kind: (Kind) Variant of the value
        data: (int | float | bool | str | tuple | frozenset) Stored data
    """

    __slots__ = ("kind", "data")

    def __init__(self, kind, data):
        if isinstance(data, Value):
            # Values are shared by reference, never wrapped
            raise TypeError(f"Value init called with existing Value {data}")
        if kind is kind_int and not INT_MIN <= data <= INT_MAX:
            raise ValueError(f"Int {data} out of 32-bit range")
        self.kind = kind
        self.data = data

    @classmethod
    def new_list(cls, items=()):
        """Create a list value from an iterable of Values."""
        return cls(kind_list, tuple(items))

    @classmethod
    def new_set(cls, items=()):
        """Create a set value from an iterable of Values."""
        return cls(kind_set, frozenset(items))

    @property
    def is_list(self):
        return self.kind is kind_list

    @property
    def is_set(self):
        return self.kind is kind_set

    def push(self, item):
        """Create a new list with item appended.

        Args:
            item: (Value) Element to append
        Returns:
            (Value) New list value, this one is unchanged
        Raises:
            TypeError: If this value is not a list
        """
        if self.kind is not kind_list:
            raise TypeError(f"Cannot push onto {self.kind.name} value")
        return Value(kind_list, self.data + (item,))

    def insert(self, item):
        """Create a new set with item added.

        Args:
            item: (Value) Element to add
        Returns:
            (Value) New set value, this one is unchanged
        Raises:
            TypeError: If this value is not a set
        """
        if self.kind is not kind_set:
            raise TypeError(f"Cannot insert into {self.kind.name} value")
        return Value(kind_set, self.data | {item})

    def format(self):
        """Convert value to bramble literal expression.

        Returns:
            (str) String representation suitable for display
        """
        kind = self.kind
        if kind is kind_int:
            return str(self.data)
        if kind is kind_float:
            return repr(self.data)
        if kind is kind_bool:
            return "true" if self.data else "false"
        if kind is kind_str:
            return '"' + self.data.translate(_string_escapes) + '"'
        if kind is kind_list:
            return "[" + ", ".join(v.format() for v in self.data) + "]"
        if kind is kind_set:
            # Sets have no order, sort the text so output is stable
            return "{" + ", ".join(sorted(v.format() for v in self.data)) + "}"
        raise TypeError(f"Unknown kind for value: {kind!r}")

    def to_python(self):
        """Convert this value to a Python equivalent.

        Lists become Python lists and sets become frozensets, recursively.

        Returns:
            (object) Converted python value
        """
        if self.kind is kind_list:
            return [v.to_python() for v in self.data]
        if self.kind is kind_set:
            return frozenset(v.to_python() for v in self.data)
        return self.data

    @classmethod
    def from_python(cls, value):
        """Convert Python values into bramble Values.

        Args:
            value: Python value to convert
        Returns:
            (Value) Bramble Value equivalent
        Raises:
            TypeError: If value is already a Value or cannot be converted
            ValueError: If an int does not fit in 32 bits
        """
        if isinstance(value, Value):
            raise TypeError("from_python called with existing Value")

        # bool first, it is a subclass of int
        if isinstance(value, bool):
            return cls(kind_bool, value)
        if isinstance(value, int):
            return cls(kind_int, value)
        if isinstance(value, float):
            return cls(kind_float, value)
        if isinstance(value, str):
            return cls(kind_str, value)
        if isinstance(value, (list, tuple)):
            return cls(kind_list, tuple(cls.from_python(v) for v in value))
        if isinstance(value, (set, frozenset)):
            return cls(kind_set, frozenset(cls.from_python(v) for v in value))

        raise TypeError(
            f"Cannot convert Python type {type(value).__name__} to bramble Value"
        )

    def _key(self):
        if self.kind is kind_float:
            return _float_bits(self.data)
        return self.data

    def __repr__(self):
        return f"Value({self.format()})"

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return self.kind is other.kind and self._key() == other._key()

    def __hash__(self):
        # tuple hash is ordered, frozenset hash is order-independent
        return hash((self.kind.name, self._key()))


def validate(value):
    """Validate that a Value is in a proper state.

    This isn't done during execution. This can be used for testing or
    analysis tools to detect problems with the runtime. Failing means
    there is a bug in the implementation, not in any bramble code.

    Args:
        value: (Value) object to check
    Raises:
        (TypeError | ValueError) if any type of problem is found
    """
    if not isinstance(value, Value):
        raise TypeError(f"Expected Value, got {type(value).__name__}")

    kind = value.kind
    if kind not in _kinds:
        raise TypeError(f"Unknown kind for value: {kind!r}")

    data = value.data
    # bool is an int subclass, check the exact type
    if type(data) is not kind.storage:
        raise TypeError(
            f"Invalid data for {kind.name} value: {type(data).__name__}"
        )

    if kind is kind_int and not INT_MIN <= data <= INT_MAX:
        raise ValueError(f"Int {data} out of 32-bit range")

    if kind is kind_list or kind is kind_set:
        for item in data:
            validate(item)
