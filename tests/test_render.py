# tests/test_render.py
import pytest

from punch_sim.core.card import PunchCard
from punch_sim.core.encoding import pattern_from_rows
from punch_sim.core.errors import UnknownStyle
from punch_sim.core.render import MARGIN, STYLES, make_style, render_card, render_deck, ruler

ROW_ORDER = ["12", "11", "0", "1", "2", "3", "4", "5", "6", "7", "8", "9"]


def punch_rows(lines):
    """Map row label -> the 80 cells of that row."""
    rows = {}
    for line in lines[-12:]:
        label, rest = line.split("|", 1)
        rows[label.strip()] = rest[:-1]
    return rows


def test_ruler():
    r = ruler()
    assert len(r) == 80
    assert r[0] == "."
    assert r[9] == "1"
    assert r[79] == "8"


def test_card_height_and_labels():
    lines = render_card(PunchCard("HELLO"))
    assert len(lines) == 14
    assert lines[0] == MARGIN + ruler()
    assert lines[1] == MARGIN + "HELLO".ljust(80)
    assert lines[2].startswith(" 12 |")
    assert lines[-1].startswith("  9 |")
    assert [line.split("|")[0].strip() for line in lines[2:]] == ROW_ORDER
    assert len(render_card(PunchCard("HELLO"), header=False, interpret=False)) == 12


def test_holes_are_marked_in_their_rows():
    rows = punch_rows(render_card(PunchCard("A1")))
    assert all(len(cells) == 80 for cells in rows.values())
    assert rows["12"][0] == "X"
    assert rows["1"][0] == "X"
    assert rows["1"][1] == "X"
    assert rows["12"][1] == " "
    assert rows["0"][0] == " "


def test_render_is_deterministic_and_read_only():
    card = PunchCard("DETERMINISTIC", protected="73-80")
    snapshot = card.copy()
    assert render_card(card, "dots") == render_card(card, "dots")
    assert card == snapshot


def test_styles():
    card = PunchCard.blank()
    card.set_column(1, "A")
    ones = punch_rows(render_card(card, "ascii-01"))
    assert ones["12"] == "1" + "0" * 79
    bcd = punch_rows(render_card(card, "bcd"))
    assert bcd["12"] == "]" + " " * 79
    assert bcd["5"] == "5" * 80
    assert bcd["1"] == "]" + "1" * 79
    assert set(STYLES) >= {"ascii-x", "ascii-01", "bcd", "dots"}


def test_unknown_style():
    with pytest.raises(UnknownStyle) as ei:
        render_card(PunchCard.blank(), "braille")
    assert isinstance(ei.value, KeyError)
    assert "ascii-x" in str(ei.value)
    with pytest.raises(UnknownStyle):
        render_deck([PunchCard.blank()], "braille")


def test_custom_style_table():
    styles = {"stars": make_style("*", "-")}
    rows = punch_rows(render_card(PunchCard("A"), "stars", styles=styles))
    assert rows["12"] == "*" + "-" * 79
    with pytest.raises(ValueError):
        make_style("**", "-")
    with pytest.raises(ValueError):
        make_style("*", "--")


def test_interpreted_line_uses_placeholder():
    card = PunchCard("AB")
    card.set_column(3, pattern_from_rows([12, 11, 0]))
    lines = render_card(card, placeholder="#")
    assert lines[1].startswith(MARGIN + "AB#")


def test_render_deck_separates_cards():
    lines = render_deck([PunchCard("ONE"), PunchCard("TWO")])
    assert len(lines) == 14 * 2 + 1
    assert lines[14] == ""
    assert lines[16] == MARGIN + "TWO".ljust(80)


def test_frame_rules_the_punch_rows():
    lines = render_card(PunchCard("HI"), frame=True)
    assert len(lines) == 16
    assert lines[2] == MARGIN + "-" * 80
    assert lines[-1] == MARGIN + "-" * 80
    assert lines[3].startswith(" 12 |")
    assert lines[3:15] == render_card(PunchCard("HI"))[2:]
    assert len(render_deck([PunchCard("A"), PunchCard("B")], frame=True)) == 16 * 2 + 1
