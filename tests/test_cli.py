# tests/test_cli.py
import pytest

import cli
from punch_sim.core.observe import read_events, summarize
from punch_sim.tools.deck_file import load_deck

PROGRAM = """      PROGRAM HELLO
      PRINT *, 'HELLO, WORLD'
      END
"""


@pytest.fixture
def deck_path(tmp_path):
    src = tmp_path / "hello.f"
    src.write_text(PROGRAM, encoding="utf-8")
    path = tmp_path / "hello.deck"
    assert cli.main(["deck", "new", str(path), "--from", str(src), "--template", "fortran", "--sequence"]) == 0
    return path


def test_encode_and_decode(capsys):
    assert cli.main(["encode", "--text", "A1"]) == 0
    out = capsys.readouterr().out
    assert "12-1" in out
    assert out.splitlines()[1].split()[-1] == "1"

    assert cli.main(["decode", "12-1", "0-3-8", "blank", "11-5"]) == 0
    assert capsys.readouterr().out == "A, N\n"

    assert cli.main(["decode", "--overpunch", "11-5", "7"]) == 0
    out = capsys.readouterr().out
    assert "-> 5 -" in out
    assert "-> 7 unsigned" in out


def test_errors_exit_with_status_one(capsys):
    assert cli.main(["encode", "--text", "~"]) == 1
    assert "error: unsupported character" in capsys.readouterr().err
    assert cli.main(["decode", "12-11-0"]) == 1
    assert cli.main(["encode", "--encoding", "baudot", "--text", "A"]) == 1
    assert "unknown encoding 'baudot'" in capsys.readouterr().err


def test_render_text(capsys):
    assert cli.main(["render", "--text", "HI", "--style", "ascii-01"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 14
    assert lines[2].startswith(" 12 |11")
    assert cli.main(["render", "--text", "HI", "--style", "braille"]) == 1


def test_deck_new_and_show(deck_path, capsys):
    deck, header = load_deck(deck_path)
    assert len(deck) == 3
    assert header["template"] == "fortran"
    assert deck.sequence_keys() == ["00000010", "00000020", "00000030"]
    assert all(card.is_protected(80) for card in deck)

    capsys.readouterr()
    assert cli.main(["deck", "show", str(deck_path), "--cards", "2..$"]) == 0
    out = capsys.readouterr().out
    assert "3 cards" in out
    assert "PRINT *, 'HELLO, WORLD'" in out
    assert "PROGRAM HELLO" not in out


def test_render_deck_selection(deck_path, capsys):
    capsys.readouterr()
    assert cli.main(["render", "--deck", str(deck_path), "--cards", "1,3", "--no-header"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 13 * 2 + 1


def test_slice_then_sort_restores_order(deck_path, tmp_path):
    shuffled = tmp_path / "shuffled.deck"
    assert cli.main(["deck", "slice", str(deck_path), str(shuffled), "--cards", "3,1,2"]) == 0
    deck, _ = load_deck(shuffled)
    assert deck.sequence_keys() == ["00000030", "00000010", "00000020"]

    assert cli.main(["seq", "sort", str(shuffled)]) == 0
    sorted_deck, _ = load_deck(shuffled)
    original, _ = load_deck(deck_path)
    assert sorted_deck.as_text() == original.as_text()


def test_seq_number_with_trace(deck_path, tmp_path, capsys):
    trace = tmp_path / "trace.jsonl"
    rc = cli.main(["seq", "number", str(deck_path), "--start", "100", "--step", "100",
                   "--cards", "2..3", "--trace-file", str(trace)])
    assert rc == 0
    assert "Tracing to" in capsys.readouterr().out

    deck, _ = load_deck(deck_path)
    assert deck.sequence_keys() == ["00000010", "00000100", "00000200"]
    assert deck[0].text.startswith("      PROGRAM HELLO")

    events = read_events(str(trace))
    assert summarize(events) == {"by_op": {"assign_sequence": 2}, "cards_touched": [1, 2]}


def test_seq_number_overflow_leaves_file_alone(deck_path, capsys):
    before = deck_path.read_text(encoding="utf-8")
    assert cli.main(["seq", "number", str(deck_path), "--columns", "79-80", "--start", "90"]) == 1
    assert "does not fit" in capsys.readouterr().err
    assert deck_path.read_text(encoding="utf-8") == before


def test_bad_arguments_exit_through_argparse(deck_path):
    with pytest.raises(SystemExit):
        cli.main(["seq", "number", str(deck_path), "--columns", "0-5"])
    assert cli.main(["seq", "number", str(deck_path), "--cards", "1..9"]) == 1


def test_verify_cycle(deck_path, tmp_path, capsys):
    assert cli.main(["verify", "start", str(deck_path)]) == 0
    original, _ = load_deck(deck_path)
    rekeyed = tmp_path / "rekeyed.txt"

    # sequence columns differ, but they are masked
    lines = [text[:72] + "99999999" for text in original.as_text()]
    rekeyed.write_text("\n".join(lines), encoding="utf-8")
    capsys.readouterr()
    assert cli.main(["verify", "pass", str(deck_path), "--from", str(rekeyed),
                     "--mask", "73-80", "--strict"]) == 0
    assert "verification passed" in capsys.readouterr().out

    lines[1] = lines[1].replace("HELLO", "HELL0")
    rekeyed.write_text("\n".join(lines), encoding="utf-8")
    assert cli.main(["verify", "pass", str(deck_path), "--from", str(rekeyed), "--mask", "73-80"]) == 0
    assert cli.main(["verify", "pass", str(deck_path), "--from", str(rekeyed),
                     "--mask", "73-80", "--strict"]) == 1
    capsys.readouterr()

    assert cli.main(["verify", "report", str(deck_path)]) == 0
    assert "line    2:" in capsys.readouterr().out


def test_verify_pass_needs_a_baseline(deck_path, capsys):
    assert cli.main(["verify", "pass", str(deck_path), "--text", "X"]) == 1
    assert "verify start" in capsys.readouterr().err


def test_templates_listing(capsys):
    assert cli.main(["templates"]) == 0
    out = capsys.readouterr().out
    assert "fortran:" in out
    assert "73-80" in out


def test_deck_info(deck_path, capsys):
    capsys.readouterr()
    assert cli.main(["deck", "info", str(deck_path)]) == 0
    out = capsys.readouterr().out
    assert "Cards: 3" in out
    assert "Template: fortran" in out
    assert "Protected cols: 73-80" in out


def test_deck_merge(deck_path, tmp_path, capsys):
    other = tmp_path / "more.deck"
    assert cli.main(["deck", "new", str(other), "--text", "      STOP", "--template", "fortran"]) == 0
    merged = tmp_path / "merged.deck"
    assert cli.main(["deck", "merge", str(deck_path), str(other), "-o", str(merged)]) == 0
    deck, header = load_deck(merged)
    assert len(deck) == 4
    assert header["template"] == "fortran"
    assert deck[3].text.startswith("      STOP")

    plain = tmp_path / "plain.deck"
    assert cli.main(["deck", "new", str(plain), "--text", "STOP"]) == 0
    capsys.readouterr()
    assert cli.main(["deck", "merge", str(deck_path), str(plain), "-o", str(merged)]) == 1
    assert "differ between decks" in capsys.readouterr().err
    assert cli.main(["deck", "merge", str(deck_path), "-o", str(merged)]) == 1


def test_card_replace(deck_path, capsys):
    deck, _ = load_deck(deck_path)
    fixed = deck[1].text.replace("HELLO, WORLD", "HELLO WORLD!")
    assert cli.main(["card", "replace", str(deck_path), "-i", "2", "--text", fixed]) == 0
    deck, _ = load_deck(deck_path)
    assert deck[1].text == fixed
    assert deck[1].is_protected(73)

    # dropping the sequence number needs --override
    capsys.readouterr()
    assert cli.main(["card", "replace", str(deck_path), "-i", "2", "--text", "      CONTINUE"]) == 1
    assert "protected" in capsys.readouterr().err
    assert cli.main(["card", "replace", str(deck_path), "-i", "9", "--text", "X"]) == 1
    assert cli.main(["card", "replace", str(deck_path), "-i", "2", "--text", "      CONTINUE",
                     "--override"]) == 0
    deck, _ = load_deck(deck_path)
    assert deck.sequence_keys() == ["00000010", " " * 8, "00000030"]


def test_card_patch(deck_path):
    assert cli.main(["card", "patch", str(deck_path), "--text", "      STOP 1"]) == 0
    deck, _ = load_deck(deck_path)
    assert len(deck) == 4
    assert deck[3].label == "patch"
    assert deck[3].is_protected(80)
    assert cli.main(["card", "patch", str(deck_path), "--text", "A\nB"]) == 1


def test_render_frame(capsys):
    assert cli.main(["render", "--text", "HI", "--frame"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 16
    assert lines[2].strip() == "-" * 80
