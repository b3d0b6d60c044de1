# errors.py: error kinds raised by the card code tables, card/deck model and renderer
from typing import Iterable, Optional, Sequence


class PunchError(Exception):
    """Base class for every error raised by punch_sim."""

    def __str__(self) -> str:
        # KeyError subclasses would otherwise quote the message
        return str(self.args[0]) if self.args else self.__class__.__name__


# -----------------------------------------------------------------------------
# Encoding table
# -----------------------------------------------------------------------------

class UnsupportedCharacter(PunchError, ValueError):
    def __init__(self, char: str, table: Optional[str] = None, column: Optional[int] = None):
        self.char = char
        self.table = table
        self.column = column
        code = f" (U+{ord(char):04X})" if len(char) == 1 else ""
        msg = f"unsupported character {char!r}{code}"
        if table:
            msg += f" in {table} encoding"
        if column is not None:
            msg += f" at column {column}"
        super().__init__(msg)


class UndefinedPattern(PunchError, ValueError):
    def __init__(self, pattern: int, table: Optional[str] = None, column: Optional[int] = None):
        from .encoding import format_pattern
        self.pattern = pattern
        self.table = table
        self.column = column
        msg = f"no character for punch pattern [{format_pattern(pattern) or 'blank'}]"
        if table:
            msg += f" in {table} encoding"
        if column is not None:
            msg += f" at column {column}"
        super().__init__(msg)


class AmbiguousPattern(PunchError, RuntimeError):
    """Two characters share one pattern: the table itself is broken."""

    def __init__(self, pattern: int, chars: Sequence[str], table: Optional[str] = None):
        from .encoding import format_pattern
        self.pattern = pattern
        self.chars = tuple(chars)
        self.table = table
        listed = ", ".join(repr(c) for c in self.chars)
        where = f" {table}" if table else ""
        super().__init__(
            f"inconsistent{where} code table: punch pattern [{format_pattern(pattern)}] maps to {listed}"
        )


class UnknownEncoding(PunchError, KeyError):
    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = tuple(available)
        super().__init__(f"unknown encoding '{name}' (available: {', '.join(self.available)})")


# -----------------------------------------------------------------------------
# Card
# -----------------------------------------------------------------------------

class ColumnOutOfRange(PunchError, IndexError):
    def __init__(self, column, limit: int = 80):
        self.column = column
        self.limit = limit
        super().__init__(f"column {column!r} out of range 1..{limit}")


class ProtectedColumnViolation(PunchError, ValueError):
    def __init__(self, column: int, columns: Sequence[int] = ()):
        self.column = column
        self.columns = tuple(columns) or (column,)
        if len(self.columns) > 1:
            listed = ", ".join(str(c) for c in self.columns)
            msg = f"columns {listed} are protected; pass override=True to write them"
        else:
            msg = f"column {column} is protected; pass override=True to write it"
        super().__init__(msg)


class TextOverflow(PunchError, ValueError):
    def __init__(self, start: int, length: int, limit: int = 80):
        self.start = start
        self.length = length
        self.limit = limit
        end = start + length - 1
        super().__init__(f"{length} characters from column {start} would end at column {end}, past column {limit}")


# -----------------------------------------------------------------------------
# Deck
# -----------------------------------------------------------------------------

class RangeOutOfBounds(PunchError, IndexError):
    def __init__(self, index, deck_len: int):
        self.index = index
        self.deck_len = deck_len
        if deck_len:
            msg = f"card index {index!r} out of range 0..{deck_len - 1}"
        else:
            msg = f"card index {index!r} out of range: deck is empty"
        super().__init__(msg)


class SequenceOverflow(PunchError, ValueError):
    def __init__(self, value: int, width: int, card_index: Optional[int] = None):
        self.value = value
        self.width = width
        self.card_index = card_index
        where = f" for card {card_index}" if card_index is not None else ""
        super().__init__(f"sequence number {value}{where} does not fit in {width} columns")


class CardOwnership(PunchError, ValueError):
    def __init__(self, message: str):
        super().__init__(f"{message}; add card.copy() instead")


class DeckMismatch(PunchError, ValueError):
    """Two decks cannot be merged: their layouts differ."""

    def __init__(self, what: str, ours, theirs):
        self.what = what
        self.ours = ours
        self.theirs = theirs
        super().__init__(f"{what} differ between decks ({ours} vs {theirs})")


# -----------------------------------------------------------------------------
# Rendering / outer layer
# -----------------------------------------------------------------------------

class UnknownStyle(PunchError, KeyError):
    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = tuple(available)
        super().__init__(f"unknown render style '{name}' (available: {', '.join(self.available)})")


class UnknownTemplate(PunchError, KeyError):
    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = tuple(available)
        super().__init__(f"unknown template '{name}' (available: {', '.join(self.available)})")


class DeckFileError(PunchError, ValueError):
    def __init__(self, path, message: str, lineno: Optional[int] = None):
        self.path = str(path)
        self.lineno = lineno
        where = f"{self.path}:{lineno}" if lineno is not None else self.path
        super().__init__(f"{where}: {message}")
