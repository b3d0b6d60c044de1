# deck_file.py: JSON-lines deck files (a header line, then one line per card)
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..core.card import PunchCard
from ..core.deck import Deck
from ..core.encoding import DEFAULT_ENCODING, get_table
from ..core.errors import DeckFileError, PunchError

DECK_FILE_VERSION = 1


def new_header(encoding: str = DEFAULT_ENCODING, template: Optional[str] = None) -> Dict[str, Any]:
    return {
        "kind": "header",
        "version": DECK_FILE_VERSION,
        "encoding": get_table(encoding).name,
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "template": template,
    }


def card_record(card: PunchCard, index: int) -> Dict[str, Any]:
    decoded = card.get_text()
    if not decoded.ok:
        cols = ", ".join(str(c) for c in decoded.undefined)
        raise PunchError(f"card {index} has punch patterns with no character (columns {cols}); cannot store as text")
    return {
        "kind": "card",
        "text": decoded.text,
        "label": card.label,
        "protected": sorted(card.protected),
    }


def save_deck(deck: Deck, path, header: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Write the deck; an existing header (e.g. from load_deck) keeps its created_at."""
    if header is None:
        encoding = deck[0].table.name if len(deck) else DEFAULT_ENCODING
        header = new_header(encoding)
    header = dict(header, kind="header", version=DECK_FILE_VERSION)
    table_name = get_table(header["encoding"]).name
    lines = [json.dumps(header, ensure_ascii=False)]
    for i, card in enumerate(deck):
        if card.table.name != table_name:
            raise PunchError(f"card {i} uses {card.table.name} encoding but the deck file is {table_name}")
        lines.append(json.dumps(card_record(card, i), ensure_ascii=False))
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    return header


def load_deck(path) -> Tuple[Deck, Dict[str, Any]]:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise DeckFileError(path, "no such deck file") from None

    header = None
    table = None
    deck = Deck()
    for lineno, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            rec = json.loads(line)
        except json.JSONDecodeError as e:
            raise DeckFileError(path, f"invalid JSON: {e.msg}", lineno) from None
        if not isinstance(rec, dict):
            raise DeckFileError(path, "expected a JSON object", lineno)
        kind = rec.get("kind")

        if header is None:
            if kind != "header":
                raise DeckFileError(path, "first record must be the deck header", lineno)
            if rec.get("version") != DECK_FILE_VERSION:
                raise DeckFileError(path, f"unsupported deck file version {rec.get('version')!r}", lineno)
            try:
                table = get_table(rec.get("encoding") or DEFAULT_ENCODING)
            except PunchError as e:
                raise DeckFileError(path, str(e), lineno) from None
            header = rec
            continue

        if kind != "card":
            raise DeckFileError(path, f"unexpected record kind {kind!r} after the header", lineno)
        text = rec.get("text", "")
        if not isinstance(text, str):
            raise DeckFileError(path, "card text must be a string", lineno)
        try:
            card = PunchCard(text, table=table, protected=rec.get("protected") or (), label=rec.get("label"))
        except (PunchError, TypeError, ValueError) as e:
            raise DeckFileError(path, str(e), lineno) from None
        deck.append(card)

    if header is None:
        raise DeckFileError(path, "deck file is empty")
    return deck, header
