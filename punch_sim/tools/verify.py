# verify.py: second-pass verification of card text, with masked column spans
from pathlib import Path
from typing import Iterable, List, Tuple

from ..core.card import CARD_COLUMNS, ColumnSpan

MASK_CHAR = "_"


def snapshot_path(deck_path) -> Path:
    return Path(deck_path).with_suffix(".verify.base")


def diff_path(deck_path) -> Path:
    return Path(deck_path).with_suffix(".verify.diff")


def _masked(line: str, mask: Iterable[ColumnSpan]) -> str:
    chars = list(line.ljust(CARD_COLUMNS))
    for span in mask:
        for col in span:
            chars[col - 1] = MASK_CHAR
    return "".join(chars).rstrip()


def lines_match(expected: str, actual: str, mask: Iterable[ColumnSpan] = ()) -> bool:
    # trailing blanks are not punched, so they never count as a difference
    mask = list(mask)
    return _masked(expected, mask) == _masked(actual, mask)


def diff_text(expected: str, actual: str, mask: Iterable[ColumnSpan] = ()) -> Tuple[str, bool]:
    """Line-by-line comparison; returns (report, changed)."""
    mask = [ColumnSpan.coerce(m) for m in mask]
    exp_lines = expected.splitlines()
    act_lines = actual.splitlines()
    out: List[str] = []
    for i in range(max(len(exp_lines), len(act_lines))):
        exp = exp_lines[i] if i < len(exp_lines) else ""
        act = act_lines[i] if i < len(act_lines) else ""
        if not lines_match(exp, act, mask):
            out.append(f"line {i + 1:>4}:")
            out.append(f"  expected |{exp}|")
            out.append(f"  actual   |{act}|")
    changed = bool(out)
    if not changed:
        out.append("verification passed: no differences")
    return "\n".join(out) + "\n", changed
