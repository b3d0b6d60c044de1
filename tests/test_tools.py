# tests/test_tools.py
import json

import pytest

from punch_sim.core.card import SEQUENCE_SPAN, ColumnSpan, PunchCard
from punch_sim.core.deck import Deck
from punch_sim.core.encoding import get_table, pattern_from_rows
from punch_sim.core.errors import (
    DeckFileError,
    ProtectedColumnViolation,
    PunchError,
    TextOverflow,
    UnknownTemplate,
)
from punch_sim.tools.deck_file import DECK_FILE_VERSION, load_deck, new_header, save_deck
from punch_sim.tools.templates import TEMPLATES, get_template
from punch_sim.tools.verify import diff_path, diff_text, lines_match, snapshot_path


# --- deck files --------------------------------------------------------------

def test_deck_file_round_trip(tmp_path):
    path = tmp_path / "hello.deck"
    deck = Deck.from_text("HELLO ¢\nWORLD", protected=SEQUENCE_SPAN)
    deck[1].label = "second"
    deck.assign_sequence()
    header = save_deck(deck, path)
    assert header["encoding"] == "ebcdic"
    assert header["version"] == DECK_FILE_VERSION

    loaded, loaded_header = load_deck(path)
    assert loaded.as_text() == deck.as_text()
    assert loaded[0].protected == frozenset(SEQUENCE_SPAN)
    assert loaded[1].label == "second"
    assert loaded_header["created_at"] == header["created_at"]


def test_deck_file_keeps_the_encoding(tmp_path):
    path = tmp_path / "ascii.deck"
    table = get_table("ascii")
    save_deck(Deck.from_text("[A+B]", table=table), path)
    loaded, header = load_deck(path)
    assert header["encoding"] == "ascii"
    assert loaded[0].table is table
    assert loaded[0].get_column(3) == pattern_from_rows([12, 0])


def test_save_refuses_undefined_patterns(tmp_path):
    card = PunchCard("A")
    card.set_column(2, pattern_from_rows([12, 11, 0]))
    with pytest.raises(PunchError):
        save_deck(Deck([card]), tmp_path / "bad.deck")


def test_save_refuses_mixed_encodings(tmp_path):
    deck = Deck([PunchCard("A"), PunchCard("B", table=get_table("ascii"))])
    with pytest.raises(PunchError):
        save_deck(deck, tmp_path / "mixed.deck")


def write_lines(path, records):
    path.write_text("\n".join(r if isinstance(r, str) else json.dumps(r) for r in records) + "\n",
                    encoding="utf-8")


HEADER = {"kind": "header", "version": DECK_FILE_VERSION, "encoding": "ebcdic"}


@pytest.mark.parametrize("records, where", [
    ([{"kind": "card", "text": "A"}], 1),
    ([HEADER, "{not json"], 2),
    ([dict(HEADER, version=99)], 1),
    ([dict(HEADER, encoding="baudot")], 1),
    ([HEADER, {"kind": "card", "text": "X" * 81}], 2),
    ([HEADER, {"kind": "card", "text": 5}], 2),
    ([HEADER, {"kind": "trailer"}], 2),
    ([HEADER, "[1, 2]"], 2),
])
def test_bad_deck_files(tmp_path, records, where):
    path = tmp_path / "bad.deck"
    write_lines(path, records)
    with pytest.raises(DeckFileError) as ei:
        load_deck(path)
    assert ei.value.lineno == where
    assert f"bad.deck:{where}:" in str(ei.value)


def test_missing_and_empty_deck_files(tmp_path):
    with pytest.raises(DeckFileError):
        load_deck(tmp_path / "nope.deck")
    empty = tmp_path / "empty.deck"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(DeckFileError):
        load_deck(empty)


def test_header_only_is_an_empty_deck(tmp_path):
    path = tmp_path / "h.deck"
    write_lines(path, [new_header("029", "cobol")])
    deck, header = load_deck(path)
    assert len(deck) == 0
    assert header["template"] == "cobol"
    assert header["encoding"] == "ebcdic"


# --- templates ---------------------------------------------------------------

def test_template_lookup():
    assert get_template("FORTRAN") is TEMPLATES["fortran"]
    with pytest.raises(UnknownTemplate) as ei:
        get_template("pl1")
    assert isinstance(ei.value, KeyError)
    assert "cobol" in str(ei.value)


@pytest.mark.parametrize("name", sorted(TEMPLATES))
def test_template_fields_do_not_overlap(name):
    spans = sorted((f.span for f in TEMPLATES[name].fields), key=lambda s: s.start)
    for a, b in zip(spans, spans[1:]):
        assert a.end < b.start


def test_template_card_protects_sequence_columns():
    tpl = get_template("fortran")
    card = tpl.new_card("      PRINT *, 'HI'          ")
    assert card.protected == frozenset(SEQUENCE_SPAN)
    assert tpl.field(card, "statement").rstrip() == "PRINT *, 'HI'"
    with pytest.raises(ProtectedColumnViolation):
        tpl.new_card("C" * 80)


def test_template_fields():
    tpl = get_template("cobol")
    card = tpl.new_card()
    tpl.set_field(card, "area_a", "MAIN")
    tpl.set_field(card, "area_b", "DISPLAY 'HELLO'.")
    assert card.text[7:11] == "MAIN"
    assert card.text[11:27] == "DISPLAY 'HELLO'."
    with pytest.raises(TextOverflow):
        tpl.set_field(card, "indicator", "**")
    with pytest.raises(ProtectedColumnViolation):
        tpl.set_field(card, "identification", "HELLO")
    tpl.set_field(card, "identification", "HELLO", override=True)
    assert tpl.field(card, "identification") == "HELLO   "
    with pytest.raises(KeyError):
        tpl.field_span("nope")


# --- verification ------------------------------------------------------------

def test_verify_identical_text():
    report, changed = diff_text("HELLO\nWORLD\n", "HELLO   \nWORLD")
    assert not changed
    assert "verification passed" in report


def test_verify_reports_differences():
    report, changed = diff_text("HELLO\nWORLD", "HELLO\nW0RLD")
    assert changed
    assert "line    2:" in report
    assert "expected |WORLD|" in report
    assert "actual   |W0RLD|" in report
    _, changed = diff_text("ONE", "ONE\nTWO")
    assert changed


def test_verify_masks_columns():
    base = "X = 1".ljust(72) + "00000010"
    rekeyed = "X = 1".ljust(72) + "00000099"
    assert not lines_match(base, rekeyed)
    assert lines_match(base, rekeyed, [SEQUENCE_SPAN])
    _, changed = diff_text(base, rekeyed, ["73-80"])
    assert not changed
    _, changed = diff_text(base, "Y" + rekeyed[1:], [ColumnSpan(73, 80)])
    assert changed


def test_verify_paths(tmp_path):
    deck = tmp_path / "prog.deck"
    assert snapshot_path(deck).name == "prog.verify.base"
    assert diff_path(deck).name == "prog.verify.diff"


def test_malformed_protection_becomes_deck_file_error(tmp_path):
    path = tmp_path / "bad.deck"
    write_lines(path, [HEADER, {"kind": "card", "text": "A", "protected": "a-b"}])
    with pytest.raises(DeckFileError) as ei:
        load_deck(path)
    assert ei.value.lineno == 2
