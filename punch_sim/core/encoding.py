# encoding.py: 12-row punch patterns, keypunch code tables, signed-digit overpunch
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import AmbiguousPattern, UndefinedPattern, UnknownEncoding, UnsupportedCharacter

# Rows top to bottom. A pattern is a 12-bit int: bit 11 is row 12, bit 10 row 11,
# bit 9 row 0, ... bit 0 row 9.
ROWS = (12, 11, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9)
ROW_COUNT = len(ROWS)
PATTERN_MASK = (1 << ROW_COUNT) - 1
BLANK = 0

ROW_BITS = {row: 1 << (ROW_COUNT - 1 - i) for i, row in enumerate(ROWS)}
ZONE_ROWS = (12, 11, 0)

POSITIVE = "+"
NEGATIVE = "-"
SIGN_ZONES = {POSITIVE: 12, NEGATIVE: 11}

DEFAULT_ENCODING = "ebcdic"


# -----------------------------------------------------------------------------
# Pattern helpers
# -----------------------------------------------------------------------------

def row_bit(row: int) -> int:
    try:
        return ROW_BITS[row]
    except (KeyError, TypeError):
        raise ValueError(f"no such card row: {row!r} (rows are 12, 11, 0-9)") from None


def check_pattern(pattern: int) -> int:
    if isinstance(pattern, bool) or not isinstance(pattern, int):
        raise ValueError(f"punch pattern must be an int, got {type(pattern).__name__}")
    if pattern & ~PATTERN_MASK:
        raise ValueError(f"punch pattern 0x{pattern:X} has bits outside the 12 card rows")
    return pattern


def pattern_from_rows(rows: Iterable[int]) -> int:
    pattern = BLANK
    for row in rows:
        pattern |= row_bit(row)
    return pattern


def rows_of(pattern: int) -> Tuple[int, ...]:
    """Punched rows of a pattern, top to bottom."""
    pattern = check_pattern(pattern)
    return tuple(row for row in ROWS if pattern & ROW_BITS[row])


def is_punched(pattern: int, row: int) -> bool:
    return bool(check_pattern(pattern) & row_bit(row))


def format_pattern(pattern: int) -> str:
    """Keypunch chart notation, e.g. 12-1 or 0-3-8. Blank is the empty string."""
    return "-".join(str(row) for row in rows_of(pattern))


def parse_pattern(notation: str) -> int:
    text = notation.strip().lower()
    if text in ("", "blank", "space"):
        return BLANK
    rows = []
    for tok in text.split("-"):
        try:
            rows.append(int(tok))
        except ValueError:
            raise ValueError(f"bad punch notation {notation!r}: '{tok}' is not a row") from None
    return pattern_from_rows(rows)


# -----------------------------------------------------------------------------
# Code tables
# -----------------------------------------------------------------------------

# Letters: zone punch plus digit rows, starting at `first`.
LETTER_ZONES = (
    ("ABCDEFGHI", 12, 1),
    ("JKLMNOPQR", 11, 1),
    ("STUVWXYZ", 0, 2),
)

# IBM 026 commercial keypunch (BCD "H" set). The lozenge at 12-4-8 is written as '¤'.
HOLLERITH_SPECIALS = (
    ("&", "12"),
    ("-", "11"),
    ("/", "0-1"),
    ("#", "3-8"),
    ("@", "4-8"),
    (".", "12-3-8"),
    ("¤", "12-4-8"),
    ("$", "11-3-8"),
    ("*", "11-4-8"),
    (",", "0-3-8"),
    ("%", "0-4-8"),
)

# IBM 029 keypunch, EBCDIC card code. { and } are the EBCDIC signed zeros.
EBCDIC_SPECIALS = (
    ("&", "12"),
    ("-", "11"),
    ("/", "0-1"),
    (":", "2-8"),
    ("#", "3-8"),
    ("@", "4-8"),
    ("'", "5-8"),
    ("=", "6-8"),
    ('"', "7-8"),
    ("¢", "12-2-8"),
    (".", "12-3-8"),
    ("<", "12-4-8"),
    ("(", "12-5-8"),
    ("+", "12-6-8"),
    ("|", "12-7-8"),
    ("!", "11-2-8"),
    ("$", "11-3-8"),
    ("*", "11-4-8"),
    (")", "11-5-8"),
    (";", "11-6-8"),
    ("¬", "11-7-8"),
    (",", "0-3-8"),
    ("%", "0-4-8"),
    ("_", "0-5-8"),
    (">", "0-6-8"),
    ("?", "0-7-8"),
    ("{", "12-0"),
    ("}", "11-0"),
)

# ASCII printable set as punched by Unix bcd(6).
ASCII_SPECIALS = (
    ("!", "0-7-8"),
    ('"', "0-6-8"),
    ("#", "3-8"),
    ("$", "11-3-8"),
    ("%", "0-4-8"),
    ("&", "12"),
    ("'", "11-7-8"),
    ("(", "12-5-8"),
    (")", "11-5-8"),
    ("*", "11-4-8"),
    ("+", "12-0"),
    (",", "0-3-8"),
    ("-", "11"),
    (".", "12-3-8"),
    ("/", "0-1"),
    (":", "5-8"),
    (";", "11-6-8"),
    ("<", "12-6-8"),
    ("=", "0-5-8"),
    (">", "6-8"),
    ("?", "7-8"),
    ("@", "4-8"),
    ("[", "2-8"),
    ("\\", "12-7-8"),
    ("]", "12-4-8"),
    ("^", "11-0"),
    ("_", "0-2-8"),
)

VARIANTS = {
    "hollerith": ("IBM 026 commercial keypunch (BCD)", HOLLERITH_SPECIALS),
    "ebcdic": ("IBM 029 keypunch (EBCDIC card code)", EBCDIC_SPECIALS),
    "ascii": ("ASCII printable set (Unix bcd)", ASCII_SPECIALS),
}

ALIASES = {
    "026": "hollerith",
    "ibm026": "hollerith",
    "029": "ebcdic",
    "ibm029": "ebcdic",
    "bcd6": "ascii",
}


def base_rules() -> List[Tuple[str, int]]:
    """Blank, digits and letters: identical in every variant."""
    rules = [(" ", BLANK)]
    rules += [(str(d), row_bit(d)) for d in range(10)]
    for letters, zone, first in LETTER_ZONES:
        for offset, ch in enumerate(letters):
            rules.append((ch, row_bit(zone) | row_bit(first + offset)))
    return rules


class EncodingTable:
    """
    Read-only character <-> punch pattern map for one keypunch variant.

    Forward lookups fold ASCII lowercase letters to uppercase. The reverse map
    is partial: most of the 4096 row combinations have no character.
    """

    __slots__ = ("name", "description", "_forward", "_reverse")

    def __init__(self, name: str, rules: Iterable[Tuple[str, int]], description: str = "", validate: bool = True):
        forward: Dict[str, int] = {}
        reverse: Dict[int, List[str]] = {}
        for ch, pattern in rules:
            if len(ch) != 1:
                raise ValueError(f"{name}: table keys must be single characters, got {ch!r}")
            if ch in forward:
                raise ValueError(f"{name}: character {ch!r} listed twice")
            forward[ch] = check_pattern(pattern)
            reverse.setdefault(pattern, []).append(ch)

        if validate:
            for pattern, chars in reverse.items():
                if len(chars) > 1:
                    raise AmbiguousPattern(pattern, chars, name)

        object.__setattr__(self, "name", name)
        object.__setattr__(self, "description", description)
        object.__setattr__(self, "_forward", MappingProxyType(forward))
        object.__setattr__(self, "_reverse", MappingProxyType({p: tuple(c) for p, c in reverse.items()}))

    def __setattr__(self, key, value):
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __delattr__(self, key):
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __repr__(self) -> str:
        return f"EncodingTable({self.name!r}, {len(self._forward)} characters)"

    def __len__(self) -> int:
        return len(self._forward)

    def __contains__(self, ch) -> bool:
        return isinstance(ch, str) and self.is_supported(ch)

    @property
    def characters(self) -> Tuple[str, ...]:
        return tuple(self._forward)

    def items(self):
        return self._forward.items()

    def is_supported(self, ch: str) -> bool:
        return len(ch) == 1 and self._fold(ch) in self._forward

    @staticmethod
    def _fold(ch: str) -> str:
        return ch.upper() if "a" <= ch <= "z" else ch

    def encode(self, ch: str) -> int:
        pattern = self._forward.get(self._fold(ch)) if len(ch) == 1 else None
        if pattern is None:
            raise UnsupportedCharacter(ch, self.name)
        return pattern

    def encode_text(self, text: str) -> List[int]:
        return [self.encode(ch) for ch in text]

    def decode(self, pattern: int) -> str:
        chars = self._reverse.get(check_pattern(pattern))
        if not chars:
            raise UndefinedPattern(pattern, self.name)
        if len(chars) > 1:
            raise AmbiguousPattern(pattern, chars, self.name)
        return chars[0]


def resolve_name(name: str) -> str:
    key = name.strip().lower()
    key = ALIASES.get(key, key)
    if key not in VARIANTS:
        raise UnknownEncoding(name, table_names())
    return key


def table_names() -> Tuple[str, ...]:
    return tuple(VARIANTS)


@lru_cache(maxsize=None)
def _build_table(key: str) -> EncodingTable:
    description, specials = VARIANTS[key]
    rules = base_rules() + [(ch, parse_pattern(notation)) for ch, notation in specials]
    return EncodingTable(key, rules, description)


def get_table(name: str = DEFAULT_ENCODING) -> EncodingTable:
    """Shared, immutable table for a variant name or alias; built on first use."""
    return _build_table(resolve_name(name))


# -----------------------------------------------------------------------------
# Overpunch (sign carried as a zone punch over the units digit)
# -----------------------------------------------------------------------------

def encode_overpunch(digit: int, sign: Optional[str]) -> int:
    if isinstance(digit, bool) or not isinstance(digit, int) or not 0 <= digit <= 9:
        raise ValueError(f"overpunch digit must be 0-9, got {digit!r}")
    if sign is None:
        return row_bit(digit)
    if sign not in SIGN_ZONES:
        raise ValueError(f"overpunch sign must be '+', '-' or None, got {sign!r}")
    return row_bit(SIGN_ZONES[sign]) | row_bit(digit)


def decode_overpunch(pattern: int) -> Tuple[int, Optional[str]]:
    """Return (digit, sign); sign is None for a digit with no zone punch."""
    zone = check_pattern(pattern) & (ROW_BITS[12] | ROW_BITS[11])
    digit_rows = rows_of(pattern & ~zone)
    if len(digit_rows) != 1:
        raise UndefinedPattern(pattern)
    if zone == ROW_BITS[12]:
        sign = POSITIVE
    elif zone == ROW_BITS[11]:
        sign = NEGATIVE
    elif zone == 0:
        sign = None
    else:
        raise UndefinedPattern(pattern)
    return digit_rows[0], sign


def encode_signed(value: int, width: int) -> List[int]:
    """Zero-padded digits with the sign overpunched on the units column."""
    if width < 1:
        raise ValueError(f"field width must be at least 1, got {width}")
    digits = str(abs(value)).zfill(width)
    if len(digits) > width:
        raise ValueError(f"{value} does not fit in {width} columns")
    sign = NEGATIVE if value < 0 else POSITIVE
    patterns = [row_bit(int(d)) for d in digits[:-1]]
    patterns.append(encode_overpunch(int(digits[-1]), sign))
    return patterns


def decode_signed(patterns: Sequence[int]) -> int:
    if not patterns:
        raise ValueError("cannot decode an empty numeric field")
    value = 0
    for pattern in patterns[:-1]:
        digit, sign = decode_overpunch(pattern)
        if sign is not None:
            # zone punches are only legal over the units digit
            raise UndefinedPattern(pattern)
        value = value * 10 + digit
    digit, sign = decode_overpunch(patterns[-1])
    value = value * 10 + digit
    return -value if sign == NEGATIVE else value
