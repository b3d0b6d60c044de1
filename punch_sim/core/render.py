# render.py: text rendering of a card's punch field, driven by a style table
from types import MappingProxyType
from typing import Iterable, List, Mapping, NamedTuple, Optional

from .card import CARD_COLUMNS, PLACEHOLDER, PunchCard
from .encoding import ROW_BITS, ROW_COUNT, ROWS
from .errors import UnknownStyle

DEFAULT_STYLE = "ascii-x"
ROW_LABELS = tuple(str(row) for row in ROWS)
MARGIN = " " * 5  # width of a row label cell, "{:>3} |"
FRAME_RULE = "-" * CARD_COLUMNS


class RenderStyle(NamedTuple):
    punched: str
    unpunched: str       # one glyph, or one glyph per row (12, 11, 0..9)
    description: str = ""

    def blank_glyph(self, row_index: int) -> str:
        return self.unpunched if len(self.unpunched) == 1 else self.unpunched[row_index]


def make_style(punched: str, unpunched: str, description: str = "") -> RenderStyle:
    if len(punched) != 1:
        raise ValueError(f"punched glyph must be one character, got {punched!r}")
    if len(unpunched) not in (1, ROW_COUNT):
        raise ValueError(f"unpunched glyphs must be 1 or {ROW_COUNT} characters, got {unpunched!r}")
    return RenderStyle(punched, unpunched, description)


STYLES: Mapping[str, RenderStyle] = MappingProxyType({
    "ascii-x": make_style("X", " ", "X for a hole, blank otherwise"),
    "ascii-01": make_style("1", "0", "1 for a hole, 0 otherwise"),
    "bcd": make_style("]", "  0123456789", "bcd(6) look: ] for a hole, the printed row digit otherwise"),
    "dots": make_style("#", ".", "# for a hole, . otherwise"),
})


def get_style(name: str, styles: Optional[Mapping[str, RenderStyle]] = None) -> RenderStyle:
    table = STYLES if styles is None else styles
    try:
        return table[name]
    except KeyError:
        raise UnknownStyle(name, sorted(table)) from None


def ruler(columns: int = CARD_COLUMNS) -> str:
    """Column-number header: a dot per column, the tens digit every tenth column."""
    return "".join(str(col // 10 % 10) if col % 10 == 0 else "." for col in range(1, columns + 1))


def render_card(card: PunchCard, style: str = DEFAULT_STYLE, header: bool = True, interpret: bool = True,
                styles: Optional[Mapping[str, RenderStyle]] = None, placeholder: str = PLACEHOLDER,
                frame: bool = False) -> List[str]:
    """
    Lines of text for one card: optional ruler, optional interpreted text,
    then the twelve punch rows, ruled above and below when `frame` is set.
    Output depends only on the arguments.
    """
    st = get_style(style, styles)
    lines = []
    if header:
        lines.append(MARGIN + ruler())
    if interpret:
        lines.append(MARGIN + card.get_text(placeholder=placeholder).text)
    if frame:
        lines.append(MARGIN + FRAME_RULE)
    columns = card.columns
    for i, row in enumerate(ROWS):
        bit = ROW_BITS[row]
        blank = st.blank_glyph(i)
        cells = "".join(st.punched if pattern & bit else blank for pattern in columns)
        lines.append(f"{ROW_LABELS[i]:>3} |{cells}|")
    if frame:
        lines.append(MARGIN + FRAME_RULE)
    return lines


def render_deck(cards: Iterable[PunchCard], style: str = DEFAULT_STYLE, **options) -> List[str]:
    """Every card of a deck, separated by one empty line."""
    get_style(style, options.get("styles"))
    lines: List[str] = []
    for i, card in enumerate(cards):
        if i:
            lines.append("")
        lines.extend(render_card(card, style, **options))
    return lines
