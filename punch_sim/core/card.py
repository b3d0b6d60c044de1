# card.py: 80-column punch card with column-scoped writes and column protection
from contextlib import contextmanager
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence, Set, Tuple, Union

from .encoding import BLANK, EncodingTable, check_pattern, decode_signed, encode_signed, get_table, pattern_from_rows
from .errors import ColumnOutOfRange, ProtectedColumnViolation, TextOverflow, UndefinedPattern, UnsupportedCharacter

CARD_COLUMNS = 80
PLACEHOLDER = "?"


class ColumnSpan:
    """Inclusive run of card columns, e.g. 73-80."""

    __slots__ = ("start", "end")

    def __init__(self, start: int, end: Optional[int] = None):
        end = start if end is None else end
        for col in (start, end):
            if isinstance(col, bool) or not isinstance(col, int) or not 1 <= col <= CARD_COLUMNS:
                raise ColumnOutOfRange(col, CARD_COLUMNS)
        if start > end:
            raise ValueError(f"column span {start}-{end} runs backwards")
        self.start = start
        self.end = end

    @classmethod
    def parse(cls, text: str) -> "ColumnSpan":
        parts = text.strip().split("-")
        if len(parts) > 2 or not all(p.strip().isdigit() for p in parts):
            raise ValueError(f"column span must be START-END or COLUMN, got {text!r}")
        return cls(*(int(p) for p in parts))

    @classmethod
    def coerce(cls, value) -> "ColumnSpan":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, range) and value.step == 1 and len(value):
            return cls(value.start, value.stop - 1)
        if isinstance(value, tuple) and len(value) == 2:
            return cls(*value)
        raise TypeError(f"cannot use {value!r} as a column span")

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def contains(self, column: int) -> bool:
        return self.start <= column <= self.end

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __len__(self) -> int:
        return self.width

    def __eq__(self, other) -> bool:
        return isinstance(other, ColumnSpan) and (self.start, self.end) == (other.start, other.end)

    def __hash__(self) -> int:
        return hash((self.start, self.end))

    def __repr__(self) -> str:
        return f"ColumnSpan({self.start}, {self.end})"

    def __str__(self) -> str:
        return f"{self.start}-{self.end}" if self.end != self.start else str(self.start)


# Columns reserved for sequence numbers on FORTRAN/COBOL/JCL decks.
SEQUENCE_SPAN = ColumnSpan(73, 80)

Columns = Union[int, str, ColumnSpan, range, Iterable[int]]


def column_list(columns: Columns) -> List[int]:
    """Normalize a column selection into a list of validated 1-based indices."""
    if isinstance(columns, bool):
        raise ColumnOutOfRange(columns, CARD_COLUMNS)
    if isinstance(columns, int):
        items = [columns]
    elif isinstance(columns, str):
        items = list(ColumnSpan.parse(columns))
    else:
        items = list(columns)
    for col in items:
        if isinstance(col, bool) or not isinstance(col, int) or not 1 <= col <= CARD_COLUMNS:
            raise ColumnOutOfRange(col, CARD_COLUMNS)
    return items


def spans_of(columns: Iterable[int]) -> List[ColumnSpan]:
    """Collapse column numbers into the fewest ascending spans."""
    spans: List[ColumnSpan] = []
    for col in sorted(set(columns)):
        if spans and spans[-1].end == col - 1:
            spans[-1] = ColumnSpan(spans[-1].start, col)
        else:
            spans.append(ColumnSpan(col))
    return spans


def format_columns(columns: Iterable[int]) -> str:
    return ",".join(str(span) for span in spans_of(columns)) or "-"


class CardText(NamedTuple):
    """Decoded card text and the columns that fell back to the placeholder."""
    text: str
    undefined: Tuple[int, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.undefined


class PunchCard:
    """
    One 80-column card. Every write goes through set_column/set_text (or the
    shared _write primitive), so only the named columns change and a protected
    column changes only under an explicit override.
    """

    def __init__(self, text: str = "", table: Optional[EncodingTable] = None,
                 protected: Columns = (), label: Optional[str] = None):
        self.table = table if table is not None else get_table()
        self.label = label
        self._columns: List[int] = [BLANK] * CARD_COLUMNS
        self._protected: Set[int] = set()
        self._owner = None      # weakref to the Deck holding this card
        if text:
            self.set_text(1, text)
        self.protect(protected)

    @classmethod
    def blank(cls, table: Optional[EncodingTable] = None, protected: Columns = (),
              label: Optional[str] = None) -> "PunchCard":
        return cls("", table=table, protected=protected, label=label)

    # --- helpers ---
    @staticmethod
    def _check_index(index: int) -> int:
        if isinstance(index, bool) or not isinstance(index, int) or not 1 <= index <= CARD_COLUMNS:
            raise ColumnOutOfRange(index, CARD_COLUMNS)
        return index

    def _to_pattern(self, value, column: int) -> int:
        if isinstance(value, str):
            try:
                return self.table.encode(value)
            except UnsupportedCharacter:
                raise UnsupportedCharacter(value, self.table.name, column) from None
        if isinstance(value, int) and not isinstance(value, bool):
            return check_pattern(value)
        return pattern_from_rows(value)

    def _write(self, start: int, patterns: Sequence[int], override: bool):
        """Write patterns to columns start.. after validating the whole run."""
        start = self._check_index(start)
        end = start + len(patterns) - 1
        if end > CARD_COLUMNS:
            raise TextOverflow(start, len(patterns), CARD_COLUMNS)
        if not override:
            blocked = [c for c in range(start, end + 1) if c in self._protected]
            if blocked:
                raise ProtectedColumnViolation(blocked[0], blocked)
        self._columns[start - 1:end] = patterns

    # --- column access ---
    def get_column(self, index: int) -> int:
        return self._columns[self._check_index(index) - 1]

    def set_column(self, index: int, value, override: bool = False):
        """Write one column from a character, a 12-bit pattern, or an iterable of rows."""
        index = self._check_index(index)
        if index in self._protected and not override:
            raise ProtectedColumnViolation(index)
        self._columns[index - 1] = self._to_pattern(value, index)

    @property
    def columns(self) -> Tuple[int, ...]:
        return tuple(self._columns)

    # --- text access ---
    def set_text(self, start: int, text: str, override: bool = False):
        start = self._check_index(start)
        if start + len(text) - 1 > CARD_COLUMNS:
            raise TextOverflow(start, len(text), CARD_COLUMNS)
        patterns = [self._to_pattern(ch, start + i) for i, ch in enumerate(text)]
        self._write(start, patterns, override)

    def get_text(self, placeholder: str = PLACEHOLDER, columns: Optional[Columns] = None) -> CardText:
        cols = range(1, CARD_COLUMNS + 1) if columns is None else column_list(columns)
        chars = []
        undefined = []
        for col in cols:
            try:
                chars.append(self.table.decode(self._columns[col - 1]))
            except UndefinedPattern:
                chars.append(placeholder)
                undefined.append(col)
        return CardText("".join(chars), tuple(undefined))

    @property
    def text(self) -> str:
        return self.get_text().text

    # --- signed numeric fields ---
    def set_signed(self, start: int, width: int, value: int, override: bool = False):
        self._check_index(start)
        self._write(start, encode_signed(value, width), override)

    def get_signed(self, start: int, width: int) -> int:
        start = self._check_index(start)
        end = start + width - 1
        if end > CARD_COLUMNS:
            raise TextOverflow(start, width, CARD_COLUMNS)
        return decode_signed(self._columns[start - 1:end])

    # --- protection ---
    @property
    def protected(self) -> frozenset:
        return frozenset(self._protected)

    def is_protected(self, index: int) -> bool:
        return self._check_index(index) in self._protected

    def protect(self, columns: Columns):
        self._protected.update(column_list(columns))

    def unprotect(self, columns: Columns):
        self._protected.difference_update(column_list(columns))

    @contextmanager
    def unprotected(self, columns: Columns):
        """Lift protection on exactly these columns for the duration of the block."""
        lifted = self._protected.intersection(column_list(columns))
        self._protected -= lifted
        try:
            yield self
        finally:
            self._protected |= lifted

    def changed_protected(self, other: "PunchCard") -> List[int]:
        """Columns protected here whose pattern differs in `other`."""
        return sorted(c for c in self._protected if self._columns[c - 1] != other._columns[c - 1])

    # --- misc ---
    @property
    def owner(self):
        """The Deck currently holding this card, or None."""
        return self._owner() if self._owner is not None else None

    def copy(self) -> "PunchCard":
        """Detached copy: same columns, protection and label, no owning deck."""
        twin = PunchCard(table=self.table, label=self.label)
        twin._columns = list(self._columns)
        twin._protected = set(self._protected)
        return twin

    def __eq__(self, other) -> bool:
        if not isinstance(other, PunchCard):
            return NotImplemented
        return (self._columns == other._columns and self._protected == other._protected
                and self.label == other.label)

    __hash__ = None

    def __repr__(self) -> str:
        return f"PunchCard({self.get_text().text.rstrip()!r}, table={self.table.name!r})"
