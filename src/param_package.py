"""
ParamPackage Format
String-based key-value container that serializes to a single line of text.

    record := "[empty]" | pair ("," pair)*
    pair   := key ":" value
    list   := "[" elem ("|" elem)* "]"

Reserved characters inside keys and values are escaped on the way out:
    ":" -> "$0"    "," -> "$1"    "$" -> "$2"

Nested lists and packages are bracketed and hidden behind ``##N``
placeholders while the outer record is split.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

KEY_VALUE_SEPARATOR = ":"
PARAM_SEPARATOR = ","
LIST_SEPARATOR = "|"

ESCAPE_CHARACTER = "$"
KEY_VALUE_SEPARATOR_ESCAPE = "$0"
PARAM_SEPARATOR_ESCAPE = "$1"
ESCAPE_CHARACTER_ESCAPE = "$2"

# Empty packages never serialize to "" (text widgets read "" as "not set").
EMPTY_PLACEHOLDER = "[empty]"

PLACEHOLDER_PREFIX = "##"

_ESCAPE_SEQUENCE_RE = re.compile(r"\$([012])")
_UNESCAPED = {
    "0": KEY_VALUE_SEPARATOR,
    "1": PARAM_SEPARATOR,
    "2": ESCAPE_CHARACTER,
}


class ParamPackageError(Exception):
    """ParamPackage usage error."""
    pass


class UnsupportedValueError(ParamPackageError, TypeError):
    """Value cannot be represented in a ParamPackage."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# PLACEHOLDERS
# ═══════════════════════════════════════════════════════════════════════════

def protect(text: str) -> Tuple[str, List[str]]:
    """
    Replace every top-level ``[...]`` span with a ``##N`` placeholder.

    Args:
        text: Raw text, possibly containing bracketed lists or packages

    Returns:
        (protected text, lookup) where ``lookup[N]`` is the original span
    """
    lookup: List[str] = []
    out: List[str] = []
    depth = 0
    literal_start = 0
    span_start = 0

    for i, char in enumerate(text):
        if char == "[":
            if depth == 0:
                span_start = i
            depth += 1
        elif char == "]" and depth > 0:
            depth -= 1
            if depth == 0:
                out.append(text[literal_start:span_start])
                out.append(f"{PLACEHOLDER_PREFIX}{len(lookup)}")
                lookup.append(text[span_start:i + 1])
                literal_start = i + 1

    # An unclosed bracket stays literal along with everything after it
    out.append(text[literal_start:])
    return "".join(out), lookup


def _restore_from(text: str, lookup: Sequence[str], start: int) -> Tuple[str, int]:
    """
    Restore placeholders ``##start``, ``##start+1``, ... in order.

    protect() numbers spans in encounter order, so the next token is always
    the literal ``##<next index>``. Matching it exactly keeps a span that is
    followed by a digit (``##05``) from being read as a different index.

    Returns:
        (restored text, index of the next unrestored placeholder)
    """
    out: List[str] = []
    cursor = 0
    index = start

    while index < len(lookup):
        token = f"{PLACEHOLDER_PREFIX}{index}"
        pos = text.find(token, cursor)
        if pos < 0:
            break
        out.append(text[cursor:pos])
        out.append(lookup[index])
        cursor = pos + len(token)
        index += 1

    out.append(text[cursor:])
    return "".join(out), index


def restore(text: str, lookup: Sequence[str]) -> str:
    """Put the spans hidden by protect() back in place."""
    restored, _ = _restore_from(text, lookup, 0)
    return restored


# ═══════════════════════════════════════════════════════════════════════════
# ENCODER / DECODER
# ═══════════════════════════════════════════════════════════════════════════

def escape(text: str) -> str:
    # Escape character first so its own sequence is not escaped again
    text = text.replace(ESCAPE_CHARACTER, ESCAPE_CHARACTER_ESCAPE)
    text = text.replace(PARAM_SEPARATOR, PARAM_SEPARATOR_ESCAPE)
    return text.replace(KEY_VALUE_SEPARATOR, KEY_VALUE_SEPARATOR_ESCAPE)


def unescape(text: str) -> str:
    return _ESCAPE_SEQUENCE_RE.sub(lambda m: _UNESCAPED[m.group(1)], text)


def encode(data: Mapping[str, str]) -> str:
    """
    Encode a string mapping to a single line.

    Pairs are emitted in key order so equal mappings encode identically.

    Args:
        data: Mapping of key -> already-projected string value

    Returns:
        Serialized record, or EMPTY_PLACEHOLDER for an empty mapping
    """
    if not data:
        return EMPTY_PLACEHOLDER

    pairs = []
    for key in sorted(data):
        pairs.append(f"{escape(key)}{KEY_VALUE_SEPARATOR}{escape(data[key])}")
    return PARAM_SEPARATOR.join(pairs)


def decode(text: str) -> Dict[str, str]:
    """
    Decode a serialized record into a key -> string mapping.

    Malformed pairs are logged and dropped; decoding never fails.

    Args:
        text: Serialized record

    Returns:
        Decoded mapping (later duplicates overwrite earlier ones)
    """
    result: Dict[str, str] = {}
    if text == EMPTY_PLACEHOLDER:
        return result

    protected, lookup = protect(text)
    pairs = protected.split(PARAM_SEPARATOR)
    next_index = 0

    for i, pair in enumerate(pairs):
        # Trailing separator
        if not pair and i == len(pairs) - 1:
            continue
        key_value = pair.split(KEY_VALUE_SEPARATOR)
        if len(key_value) != 2:
            restored, next_index = _restore_from(pair, lookup, next_index)
            logger.error("invalid key pair %s", restored)
            continue
        key, value = key_value
        # Keys are never restored, but their placeholders still use up indices
        _, next_index = _restore_from(key, lookup, next_index)
        # Spans were escaped together with their value, so restore comes first
        value, next_index = _restore_from(value, lookup, next_index)
        result[unescape(key)] = unescape(value)

    return result


# ═══════════════════════════════════════════════════════════════════════════
# VALUE SHAPES
# ═══════════════════════════════════════════════════════════════════════════

class Shape(Enum):
    SCALAR = "scalar"
    LIST = "list"
    RECORD = "record"
    RECORD_LIST = "record_list"


@dataclass(frozen=True)
class ParsedValue:
    """A stored string together with the shape it was recognized as."""
    shape: Shape
    raw: str
    items: Tuple[str, ...] = ()


def _is_bracketed(text: str) -> bool:
    """True when the whole text is one matching ``[...]`` span."""
    if len(text) < 2 or text[0] != "[" or text[-1] != "]":
        return False
    protected, _ = protect(text)
    return protected == f"{PLACEHOLDER_PREFIX}0"


def _is_record_text(protected: str, restored: str) -> bool:
    if restored == EMPTY_PLACEHOLDER:
        return True
    return PARAM_SEPARATOR in protected or KEY_VALUE_SEPARATOR in protected


def classify(value: str) -> ParsedValue:
    """
    Work out whether a stored value is a scalar, a list, a package
    or a list of packages.

    Only the outer bracket layer is inspected; anything nested deeper is
    kept verbatim in ``items``.
    """
    if not _is_bracketed(value):
        return ParsedValue(Shape.SCALAR, value)

    inner = value[1:-1]
    if not inner:
        return ParsedValue(Shape.LIST, value)

    protected, lookup = protect(inner)
    parts = protected.split(LIST_SEPARATOR)
    restored = []
    next_index = 0
    for part in parts:
        item, next_index = _restore_from(part, lookup, next_index)
        restored.append(item)
    items = tuple(restored)
    record_like = [_is_record_text(part, item) for part, item in zip(parts, items)]

    if len(parts) == 1:
        shape = Shape.RECORD if record_like[0] else Shape.LIST
    else:
        shape = Shape.RECORD_LIST if all(record_like) else Shape.LIST

    return ParsedValue(shape, value, items)


def _scalar_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    raise UnsupportedValueError(f"cannot store {type(value).__name__} as a list element")


def parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("1", "true"):
        return True
    if lowered in ("0", "false"):
        return False
    raise ValueError(f"not a bool: {text!r}")


_PARSERS = {
    str: str,
    int: int,
    float: float,
    bool: parse_bool,
}


# ═══════════════════════════════════════════════════════════════════════════
# CONTAINER
# ═══════════════════════════════════════════════════════════════════════════

class ParamPackage:
    """
    A string-based key-value container that serializes to and from a
    single line of text.

    Every value is stored as a string. Typed getters never raise on bad
    data: a missing key or a value of the wrong shape yields the default.
    """

    def __init__(self, source: Any = None):
        self._data: Dict[str, str] = {}

        if source is None:
            return
        if isinstance(source, str):
            self._data = decode(source)
        elif isinstance(source, ParamPackage):
            self._data = dict(source._data)
        else:
            pairs = source.items() if isinstance(source, Mapping) else source
            for key, value in pairs:
                if not isinstance(key, str) or not isinstance(value, str):
                    raise UnsupportedValueError(
                        f"expected str pairs, got {type(key).__name__}: {type(value).__name__}"
                    )
                self._data[key] = value

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParamPackage":
        """Build a package from plain Python values (nested dicts become packages)."""
        package = cls()
        for key, value in data.items():
            package.set(str(key), value)
        return package

    def serialize(self) -> str:
        return encode(self._data)

    def to_dict(self, expand: bool = False) -> Dict[str, Any]:
        """
        Export the package as a dict.

        Args:
            expand: Project bracketed values into lists and nested dicts

        Returns:
            dict of raw strings, or of expanded values when ``expand`` is set
        """
        if not expand:
            return dict(self.items())
        return {key: _expand_value(value) for key, value in self.items()}

    # Getters

    def _lookup(self, key: str) -> Optional[str]:
        value = self._data.get(key)
        if value is None:
            logger.debug("key %s not found", key)
        return value

    def get(self, key: str, default: Any) -> Any:
        """Typed get; the type and shape of ``default`` pick the conversion."""
        if isinstance(default, ParamPackage):
            return self.get_package(key, default)
        if isinstance(default, (list, tuple)):
            if default and isinstance(default[0], ParamPackage):
                return self.get_package_list(key, default)
            item_type = type(default[0]) if default else str
            return self.get_list(key, default, item_type)
        if isinstance(default, bool):
            return self.get_bool(key, default)
        if isinstance(default, int):
            return self.get_int(key, default)
        if isinstance(default, float):
            return self.get_float(key, default)
        if isinstance(default, str):
            return self.get_str(key, default)
        raise UnsupportedValueError(f"no getter for default of type {type(default).__name__}")

    def get_str(self, key: str, default: str = "") -> str:
        value = self._lookup(key)
        return default if value is None else value

    def _get_scalar(self, key: str, default: Any, item_type: type) -> Any:
        value = self._lookup(key)
        if value is None:
            return default
        try:
            return _PARSERS[item_type](value)
        except ValueError:
            logger.error("failed to convert %s to %s", value, item_type.__name__)
            return default

    def get_int(self, key: str, default: int = 0) -> int:
        return self._get_scalar(key, default, int)

    def get_float(self, key: str, default: float = 0.0) -> float:
        return self._get_scalar(key, default, float)

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self._get_scalar(key, default, bool)

    def get_list(self, key: str, default: Sequence[Any], item_type: type = str) -> List[Any]:
        """
        Get a bracketed list, converting every element with ``item_type``.

        If any element fails to convert, the whole default is returned.
        """
        value = self._lookup(key)
        if value is None:
            return default

        parsed = classify(value)
        if parsed.shape is Shape.SCALAR:
            logger.error("failed to convert %s to list", value)
            return default

        parser = _PARSERS.get(item_type)
        if parser is None:
            raise UnsupportedValueError(f"unsupported list element type {item_type.__name__}")

        result = []
        for item in parsed.items:
            if _is_bracketed(item):
                logger.error("nested list %s in %s is not supported", item, value)
                return default
            try:
                result.append(parser(item))
            except ValueError:
                logger.error("failed to convert %s to %s", item, item_type.__name__)
                return default
        return result

    def get_package(self, key: str, default: "ParamPackage") -> "ParamPackage":
        value = self._lookup(key)
        if value is None:
            return default

        parsed = classify(value)
        if parsed.shape is Shape.RECORD:
            return ParamPackage(parsed.items[0])

        if parsed.shape is Shape.RECORD_LIST:
            logger.error("%s is a list of packages, not a ParamPackage", value)
        elif parsed.shape is Shape.LIST:
            logger.error("%s is a list, not a ParamPackage", value)
        else:
            logger.error("%s is not a ParamPackage", value)
        return default

    def get_package_list(self, key: str, default: Sequence["ParamPackage"]) -> List["ParamPackage"]:
        value = self._lookup(key)
        if value is None:
            return default

        parsed = classify(value)
        if parsed.shape in (Shape.RECORD, Shape.RECORD_LIST):
            return [ParamPackage(item) for item in parsed.items]
        if parsed.shape is Shape.LIST and not parsed.items:
            return []

        if parsed.shape is Shape.LIST:
            logger.error("%s is a list of a primitive type, not of ParamPackages", value)
        else:
            logger.error("%s is not a list", value)
        return default

    # Setters

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, projecting it to its string form."""
        if isinstance(value, str):
            self.set_str(key, value)
        elif isinstance(value, bool):
            self._data[key] = _scalar_text(value)
        elif isinstance(value, int):
            self.set_int(key, value)
        elif isinstance(value, float):
            self.set_float(key, value)
        elif isinstance(value, (ParamPackage, Mapping)):
            self.set_package(key, value)
        elif isinstance(value, (list, tuple)):
            if value and all(isinstance(v, (ParamPackage, Mapping)) for v in value):
                self.set_package_list(key, value)
            else:
                self.set_list(key, value)
        else:
            raise UnsupportedValueError(f"cannot store {type(value).__name__} under {key!r}")

    def set_str(self, key: str, value: str) -> None:
        self._data[key] = value

    def set_int(self, key: str, value: int) -> None:
        self._data[key] = str(int(value))

    def set_float(self, key: str, value: float) -> None:
        self._data[key] = str(float(value))

    def set_list(self, key: str, values: Iterable[Any]) -> None:
        # Elements must be scalars: lists never nest inside lists
        elements = [_scalar_text(v) for v in values]
        self._data[key] = f"[{LIST_SEPARATOR.join(elements)}]"

    def set_package(self, key: str, value: Mapping[str, Any]) -> None:
        package = _as_package(value)
        self._data[key] = f"[{package.serialize()}]"

    def set_package_list(self, key: str, values: Iterable[Mapping[str, Any]]) -> None:
        encoded = [_as_package(v).serialize() for v in values]
        self._data[key] = f"[{LIST_SEPARATOR.join(encoded)}]"

    # Other methods

    def has(self, key: str) -> bool:
        return key in self._data

    def erase(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def copy(self) -> "ParamPackage":
        return ParamPackage(self)

    def keys(self) -> List[str]:
        return sorted(self._data)

    def values(self) -> List[str]:
        return [self._data[key] for key in self.keys()]

    def items(self) -> List[Tuple[str, str]]:
        return [(key, self._data[key]) for key in self.keys()]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ParamPackage):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    __hash__ = None

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return f"ParamPackage({self.serialize()!r})"


def _as_package(value: Any) -> ParamPackage:
    if isinstance(value, ParamPackage):
        return value
    if isinstance(value, Mapping):
        return ParamPackage.from_dict(value)
    raise UnsupportedValueError(f"cannot store {type(value).__name__} as a ParamPackage")


def _expand_value(value: str) -> Any:
    parsed = classify(value)
    if parsed.shape is Shape.SCALAR:
        return value
    if parsed.shape is Shape.LIST:
        return list(parsed.items)
    nested = [ParamPackage(item).to_dict(expand=True) for item in parsed.items]
    if parsed.shape is Shape.RECORD:
        return nested[0]
    return nested
