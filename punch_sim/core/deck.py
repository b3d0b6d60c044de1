# deck.py: ordered card deck; sequence numbering, sort and slice, all column-scoped
import logging
import weakref
from typing import Dict, Iterable, Iterator, List, Optional, Union

from .card import CARD_COLUMNS, SEQUENCE_SPAN, ColumnSpan, Columns, PunchCard, format_columns
from .encoding import EncodingTable, get_table
from .errors import CardOwnership, DeckMismatch, ProtectedColumnViolation, RangeOutOfBounds, SequenceOverflow
from .observe import TraceSink, now_ts

log = logging.getLogger(__name__)

Selection = Union[None, slice, Iterable[int]]


def format_sequence(value: int, width: int, card_index: Optional[int] = None) -> str:
    """Zero-padded sequence number exactly `width` columns wide."""
    digits = str(value).zfill(width)
    if value < 0 or len(digits) > width:
        raise SequenceOverflow(value, width, card_index)
    return digits


def split_card_lines(text: str) -> List[str]:
    """One entry per card: long lines wrap every 80 columns, empty lines stay blank cards."""
    lines = []
    for line in text.splitlines():
        if not line:
            lines.append("")
            continue
        for i in range(0, len(line), CARD_COLUMNS):
            lines.append(line[i:i + CARD_COLUMNS])
    return lines or [""]


class Deck:
    """
    Ordered card collection. Deck-wide operations touch each card only through
    its column-scoped writes and only inside the span they name.
    """

    def __init__(self, cards: Optional[Iterable[PunchCard]] = None):
        self._cards: List[PunchCard] = []
        self.trace_sink = None          # type: Optional[TraceSink]
        self.metrics = {
            "sequence_writes": 0,
            "sorts": 0,
        }
        self.extend(cards or ())

    @classmethod
    def from_text(cls, text: str, table: Optional[EncodingTable] = None, sequence: bool = False,
                  protected: Columns = ()) -> "Deck":
        table = table if table is not None else get_table()
        deck = cls(PunchCard(line, table=table, protected=protected) for line in split_card_lines(text))
        if sequence:
            deck.assign_sequence()
        return deck

    # -----------------------------------------------------------------------
    # Sequence protocol
    # -----------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[PunchCard]:
        return iter(self._cards)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self.slice(index)
        return self._cards[self._check_index(index)]

    def __repr__(self) -> str:
        return f"Deck({len(self._cards)} cards)"

    @property
    def cards(self) -> tuple:
        return tuple(self._cards)

    def _check_index(self, index: int) -> int:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._cards):
            raise RangeOutOfBounds(index, len(self._cards))
        return index

    def _check_new(self, card: PunchCard):
        if not isinstance(card, PunchCard):
            raise TypeError(f"decks hold PunchCard objects, got {type(card).__name__}")
        owner = card.owner
        if owner is self:
            raise CardOwnership("card is already in this deck")
        if owner is not None:
            raise CardOwnership("card belongs to another deck")

    def _adopt(self, card: PunchCard) -> PunchCard:
        card._owner = weakref.ref(self)
        return card

    @staticmethod
    def _release(card: PunchCard) -> PunchCard:
        card._owner = None
        return card

    def append(self, card: PunchCard):
        self._check_new(card)
        self._cards.append(self._adopt(card))

    def extend(self, cards: Iterable[PunchCard]):
        """All-or-nothing: no card is taken unless every card can be."""
        batch = list(cards)
        for i, card in enumerate(batch):
            self._check_new(card)
            if any(c is card for c in batch[:i]):
                raise CardOwnership("card listed twice")
        self._cards.extend(self._adopt(card) for card in batch)

    def insert(self, index: int, card: PunchCard):
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= len(self._cards):
            raise RangeOutOfBounds(index, len(self._cards) + 1)
        self._check_new(card)
        self._cards.insert(index, self._adopt(card))

    def pop(self, index: int = -1) -> PunchCard:
        if index == -1 and self._cards:
            index = len(self._cards) - 1
        return self._release(self._cards.pop(self._check_index(index)))

    def replace(self, index: int, card: PunchCard, override: bool = False) -> PunchCard:
        """
        Put `card` at `index` and return the card it displaces. Columns the old
        card protects must read the same on the new one unless `override` is
        set; the new card then inherits that protection.
        """
        old = self._cards[self._check_index(index)]
        if card is old:
            return old
        self._check_new(card)
        changed = old.changed_protected(card)
        if changed and not override:
            raise ProtectedColumnViolation(changed[0], changed)
        card.protect(old.protected)
        self._cards[index] = self._adopt(card)
        self._emit("replace", card_index=index, protected_changed=len(changed))
        return self._release(old)

    @property
    def protected_columns(self) -> frozenset:
        """Columns protected on every card (empty for an empty deck)."""
        if not self._cards:
            return frozenset()
        return frozenset.intersection(*(card.protected for card in self._cards))

    def merge(self, other: "Deck"):
        """Append copies of `other`'s cards; both decks must share encoding and protection."""
        if self._cards and other._cards:
            ours, theirs = self._cards[0].table.name, other._cards[0].table.name
            if ours != theirs:
                raise DeckMismatch("encodings", ours, theirs)
            if self.protected_columns != other.protected_columns:
                raise DeckMismatch("protected columns", format_columns(self.protected_columns),
                                   format_columns(other.protected_columns))
        before = len(self._cards)
        self.extend(card.copy() for card in other)
        self._emit("merge", added=len(self._cards) - before)

    def as_text(self) -> List[str]:
        return [card.text for card in self._cards]

    def resolve(self, selection: Selection) -> List[int]:
        """Turn a selection (None, slice, or iterable of 0-based indices) into checked indices."""
        if selection is None:
            return list(range(len(self._cards)))
        if isinstance(selection, slice):
            n = len(self._cards)
            for bound in (selection.start, selection.stop):
                if bound is not None and not -n <= bound <= n:
                    raise RangeOutOfBounds(bound, n)
            return list(range(*selection.indices(n)))
        if isinstance(selection, int):
            return [self._check_index(selection)]
        return [self._check_index(i) for i in selection]

    # -----------------------------------------------------------------------
    # Observability
    # -----------------------------------------------------------------------
    def set_trace_sink(self, sink):
        self.trace_sink = sink

    def _emit(self, op_name: str, **fields):
        if not self.trace_sink:
            return
        event = {"ts": now_ts(), "op_name": op_name, "deck_size": len(self._cards)}
        event.update(fields)
        self.trace_sink.emit(event)

    # -----------------------------------------------------------------------
    # Deck-wide operations
    # -----------------------------------------------------------------------
    def assign_sequence(self, selection: Selection = None, start: int = 10, step: int = 10,
                        columns=SEQUENCE_SPAN) -> List[str]:
        """
        Punch start + step * position into `columns` of every selected card.
        Nothing is written until every index and every number has been checked;
        columns outside the span are never touched.
        """
        span = ColumnSpan.coerce(columns)
        indices = self.resolve(selection)
        plan = []
        for position, idx in enumerate(indices):
            value = start + step * position
            plan.append((idx, value, format_sequence(value, span.width, idx)))

        for idx, value, digits in plan:
            card = self._cards[idx]
            with card.unprotected(span):
                card.set_text(span.start, digits)
            self.metrics["sequence_writes"] += 1
            self._emit("assign_sequence", card_index=idx, columns=str(span), value=value)

        log.debug("numbered %d card(s) in columns %s (start=%d step=%d)", len(plan), span, start, step)
        return [digits for _, _, digits in plan]

    def sequence_keys(self, columns=SEQUENCE_SPAN) -> List[str]:
        span = ColumnSpan.coerce(columns)
        return [card.get_text(columns=span).text for card in self._cards]

    def sort_by_sequence(self, columns=SEQUENCE_SPAN):
        """Stable ascending sort on the decoded text of `columns`; recovers a dropped deck."""
        span = ColumnSpan.coerce(columns)
        keys: Dict[int, str] = {id(card): card.get_text(columns=span).text for card in self._cards}
        before = [id(card) for card in self._cards]
        self._cards.sort(key=lambda card: keys[id(card)])
        moved = sum(1 for a, card in zip(before, self._cards) if a != id(card))
        self.metrics["sorts"] += 1
        self._emit("sort_by_sequence", columns=str(span), moved=moved)
        log.debug("sorted %d card(s) on columns %s, %d moved", len(self._cards), span, moved)

    def slice(self, selection: Selection) -> "Deck":
        """New deck holding copies of the selected cards, in selection order."""
        return Deck(self._cards[i].copy() for i in self.resolve(selection))
