# cli.py: command line for the punch card codec, deck files, sequencing and rendering
# Thin layer over punch_sim.core: parses flags, reads/writes files, prints results.

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from punch_sim.core.card import SEQUENCE_SPAN, ColumnSpan, PunchCard, format_columns
from punch_sim.core.deck import Deck, split_card_lines
from punch_sim.core.encoding import (
    DEFAULT_ENCODING,
    decode_overpunch,
    format_pattern,
    get_table,
    parse_pattern,
    table_names,
)
from punch_sim.core.errors import DeckMismatch, PunchError
from punch_sim.core.observe import TraceSink
from punch_sim.core.render import DEFAULT_STYLE, STYLES, render_card, render_deck
from punch_sim.logging_config import setup_logging
from punch_sim.tools.deck_file import load_deck, new_header, save_deck
from punch_sim.tools.templates import TEMPLATES, get_template
from punch_sim.tools.verify import diff_path, diff_text, snapshot_path

log = logging.getLogger("punch_sim.cli")


# -----------------------------------------------------------------------------
# Utilities
# -----------------------------------------------------------------------------

def read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def text_arg(args: argparse.Namespace) -> str:
    """Inline --text wins over --from; with neither, read stdin."""
    if getattr(args, "text", None) is not None:
        return args.text
    return read_text(getattr(args, "source", None) or "-")


def span_arg(text: str) -> ColumnSpan:
    try:
        return ColumnSpan.parse(text)
    except (ValueError, IndexError) as e:
        raise argparse.ArgumentTypeError(str(e))


def parse_range_expression(expr: str, deck_len: int) -> List[int]:
    """
    Expand 1-based card ranges such as '1..10,25,40..$' into zero-based indices,
    keeping first-seen order and dropping repeats.
    """
    if not expr.strip():
        raise ValueError("range expression cannot be empty")

    def bound(tok: str) -> int:
        tok = tok.strip()
        if tok == "$":
            if deck_len == 0:
                raise ValueError("deck is empty; '$' is undefined")
            return deck_len
        if not tok.isdigit():
            raise ValueError(f"range bound '{tok}' is not a number")
        if int(tok) == 0:
            raise ValueError("card numbers are 1-based")
        return int(tok)

    indices: List[int] = []
    for part in expr.split(","):
        part = part.strip()
        if not part:
            continue
        if ".." in part:
            lo_raw, hi_raw = part.split("..", 1)
            lo, hi = bound(lo_raw), bound(hi_raw)
            if lo > hi:
                raise ValueError(f"range {lo}..{hi} runs backwards")
            values = range(lo, hi + 1)
        else:
            values = [bound(part)]
        for v in values:
            if v - 1 not in indices:
                indices.append(v - 1)
    if not indices:
        raise ValueError(f"no cards selected by '{expr}'")
    return indices


def select(deck: Deck, expr: Optional[str]) -> Optional[List[int]]:
    return None if expr is None else parse_range_expression(expr, len(deck))


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def cmd_encode(args: argparse.Namespace) -> int:
    table = get_table(args.encoding)
    text = text_arg(args).rstrip("\n")
    for col, ch in enumerate(text, start=1):
        pattern = table.encode(ch)
        print(f"{col:>3}  {ch!r:<5} {format_pattern(pattern) or 'blank'}")
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    table = get_table(args.encoding)
    patterns = [parse_pattern(p) for p in args.patterns]
    if args.overpunch:
        for p in patterns:
            digit, sign = decode_overpunch(p)
            print(f"[{format_pattern(p)}] -> {digit} {sign or 'unsigned'}")
        return 0
    print("".join(table.decode(p) for p in patterns))
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    if args.deck:
        deck, _ = load_deck(args.deck)
    else:
        deck = Deck.from_text(text_arg(args), table=get_table(args.encoding))
    cards = deck.slice(select(deck, args.cards)) if args.cards else deck
    lines = render_deck(cards, args.style, header=not args.no_header, interpret=not args.no_interpret,
                        frame=args.frame)
    print("\n".join(lines))
    return 0


def cmd_deck_new(args: argparse.Namespace) -> int:
    table = get_table(args.encoding)
    text = text_arg(args)
    if args.template:
        tpl = get_template(args.template)
        deck = Deck(tpl.new_card(line, table=table) for line in split_card_lines(text))
    else:
        deck = Deck.from_text(text, table=table, protected=args.protect or ())
    if args.sequence:
        deck.assign_sequence(start=args.start, step=args.step)
    save_deck(deck, args.deck, new_header(table.name, args.template))
    print(f"Created deck '{args.deck}' with {len(deck)} cards ({table.name})")
    return 0


def cmd_deck_show(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    print(f"Deck '{args.deck}': {len(deck)} cards, encoding={header.get('encoding')}, "
          f"template={header.get('template') or '-'}")
    for i in (select(deck, args.cards) or range(len(deck))):
        card = deck[i]
        label = f"  [{card.label}]" if card.label else ""
        print(f"{i + 1:>5} |{card.text}|{label}")
        if args.render:
            print("\n".join(render_card(card, args.style, frame=args.frame)))
    return 0


def cmd_deck_slice(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    part = deck.slice(parse_range_expression(args.cards, len(deck)))
    save_deck(part, args.out, new_header(header["encoding"], header.get("template")))
    print(f"Wrote {len(part)} of {len(deck)} cards to '{args.out}'")
    return 0


def cmd_deck_info(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    print(f"Deck: {args.deck}")
    print(f"Cards: {len(deck)}")
    print(f"Encoding: {header.get('encoding')}")
    print(f"Template: {header.get('template') or '(none)'}")
    print(f"Created: {header.get('created_at') or '(unknown)'}")
    print(f"Protected cols: {format_columns(deck.protected_columns)}")
    print(f"Labelled cards: {sum(1 for card in deck if card.label)}")
    return 0


def cmd_deck_merge(args: argparse.Namespace) -> int:
    if len(args.inputs) < 2:
        raise ValueError("merge needs at least two input decks")
    merged, first = load_deck(args.inputs[0])
    for path in args.inputs[1:]:
        deck, header = load_deck(path)
        for key in ("encoding", "template"):
            if header.get(key) != first.get(key):
                raise DeckMismatch(f"{key}s", first.get(key), header.get(key))
        merged.merge(deck)
    save_deck(merged, args.output, new_header(first["encoding"], first.get("template")))
    print(f"Merged {len(merged)} cards into '{args.output}'")
    return 0


def single_card_text(args: argparse.Namespace) -> str:
    lines = split_card_lines(text_arg(args).rstrip("\n"))
    if len(lines) != 1:
        raise ValueError(f"expected the text of one card, got {len(lines)} lines")
    return lines[0]


def cmd_card_replace(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    if not 1 <= args.index <= len(deck):
        raise ValueError(f"card number {args.index} out of range 1..{len(deck)}")
    old = deck[args.index - 1]
    card = PunchCard(single_card_text(args), table=old.table, label=args.label or old.label)
    deck.replace(args.index - 1, card, override=args.override)
    save_deck(deck, args.deck, header)
    print(f"Replaced card {args.index} in '{args.deck}'")
    return 0


def cmd_card_patch(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    card = PunchCard(single_card_text(args), table=get_table(header["encoding"]),
                     protected=deck.protected_columns, label=args.label or "patch")
    deck.append(card)
    save_deck(deck, args.deck, header)
    print(f"Appended patch card {len(deck)} to '{args.deck}'")
    return 0


def cmd_seq_number(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    if args.trace_file:
        deck.set_trace_sink(TraceSink(path=args.trace_file))
        print(f"Tracing to '{args.trace_file}'")
    numbers = deck.assign_sequence(select(deck, args.cards), start=args.start, step=args.step,
                                   columns=args.columns)
    save_deck(deck, args.deck, header)
    print(f"Numbered {len(numbers)} cards in columns {args.columns} (start {args.start}, step {args.step})")
    return 0


def cmd_seq_sort(args: argparse.Namespace) -> int:
    deck, header = load_deck(args.deck)
    if args.trace_file:
        deck.set_trace_sink(TraceSink(path=args.trace_file))
    deck.sort_by_sequence(args.columns)
    save_deck(deck, args.deck, header)
    print(f"Sorted '{args.deck}' on columns {args.columns}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    deck, _ = load_deck(args.deck)
    base = snapshot_path(args.deck)
    if args.verify_cmd == "start":
        base.write_text("\n".join(deck.as_text()) + "\n", encoding="utf-8")
        print(f"Stored verification baseline at '{base}'")
        return 0

    out = diff_path(args.deck)
    if args.verify_cmd == "report":
        if not out.exists():
            print(f"No verification diff at '{out}'. Run 'verify pass' first.")
            return 0
        print(out.read_text(encoding="utf-8"), end="")
        return 0

    # pass
    if not base.exists():
        print(f"error: no verification baseline at '{base}'. Run 'verify start' first.", file=sys.stderr)
        return 1
    report, changed = diff_text(base.read_text(encoding="utf-8"), text_arg(args), args.mask or ())
    out.write_text(report, encoding="utf-8")
    print(report, end="")
    if changed and args.strict:
        return 1
    return 0


def cmd_templates(args: argparse.Namespace) -> int:
    for tpl in TEMPLATES.values():
        print(f"{tpl.name}: {tpl.description}")
        for f in tpl.fields:
            print(f"  {str(f.span):>7}  {f.name:<15} {f.description}")
    return 0


# -----------------------------------------------------------------------------
# Argument parsing
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="80-column punch card codec, deck tools and renderer")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    p.add_argument("--log-file", help="Also write log output to this file")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_text_opts(prs: argparse.ArgumentParser):
        prs.add_argument("--text", help="Inline text")
        prs.add_argument("--from", dest="source", help="Read text from file ('-' for stdin)")

    def add_encoding_opt(prs: argparse.ArgumentParser):
        prs.add_argument("--encoding", default=DEFAULT_ENCODING,
                         help=f"Code table: {', '.join(table_names())} (default {DEFAULT_ENCODING})")

    def add_style_opt(prs: argparse.ArgumentParser):
        prs.add_argument("--style", default=DEFAULT_STYLE, help=f"Render style: {', '.join(STYLES)}")

    # encode
    pe = sub.add_parser("encode", help="Show the punch pattern of every character")
    add_text_opts(pe)
    add_encoding_opt(pe)

    # decode
    pd = sub.add_parser("decode", help="Decode punch patterns such as 12-1 0-3-8")
    pd.add_argument("patterns", nargs="+", help="Row notation, one per column")
    pd.add_argument("--overpunch", action="store_true", help="Decode as signed digits")
    add_encoding_opt(pd)

    # render
    pr = sub.add_parser("render", help="Render cards as text")
    add_text_opts(pr)
    pr.add_argument("--deck", help="Render a deck file instead of text")
    pr.add_argument("--cards", help="Card numbers, e.g. 1..3,7,9..$")
    pr.add_argument("--no-header", action="store_true", help="Omit the column ruler")
    pr.add_argument("--no-interpret", action="store_true", help="Omit the interpreted text line")
    pr.add_argument("--frame", action="store_true", help="Rule lines above and below the punch rows")
    add_style_opt(pr)
    add_encoding_opt(pr)

    # deck
    pk = sub.add_parser("deck", help="Create, list and slice deck files")
    dsub = pk.add_subparsers(dest="deck_cmd", required=True)
    pn = dsub.add_parser("new", help="Create a deck file from text, one card per line")
    pn.add_argument("deck", help="Deck file to write")
    add_text_opts(pn)
    add_encoding_opt(pn)
    pn.add_argument("--template", help=f"Card layout: {', '.join(TEMPLATES)}")
    pn.add_argument("--protect", type=span_arg, help="Protect a column span on every card, e.g. 73-80")
    pn.add_argument("--sequence", action="store_true", help="Number the new deck in columns 73-80")
    pn.add_argument("--start", type=int, default=10, help="First sequence number")
    pn.add_argument("--step", type=int, default=10, help="Sequence increment")
    ps = dsub.add_parser("show", help="List a deck")
    ps.add_argument("deck")
    ps.add_argument("--cards", help="Card numbers, e.g. 1..3,7")
    ps.add_argument("--render", action="store_true", help="Also render each card")
    ps.add_argument("--frame", action="store_true", help="Rule lines around rendered rows")
    add_style_opt(ps)
    pl = dsub.add_parser("slice", help="Copy selected cards into a new deck file")
    pl.add_argument("deck")
    pl.add_argument("out", help="Deck file to write")
    pl.add_argument("--cards", required=True, help="Card numbers, e.g. 1..3,7")
    pi = dsub.add_parser("info", help="Summarize a deck file")
    pi.add_argument("deck")
    pm = dsub.add_parser("merge", help="Concatenate decks with the same layout into a new deck file")
    pm.add_argument("inputs", nargs="+", help="Deck files, in order")
    pm.add_argument("-o", "--output", required=True, help="Deck file to write")

    # card
    pc = sub.add_parser("card", help="Replace or patch single cards")
    csub = pc.add_subparsers(dest="card_cmd", required=True)
    pcr = csub.add_parser("replace", help="Replace one card, keeping its protected columns")
    pcr.add_argument("deck")
    pcr.add_argument("-i", "--index", type=int, required=True, help="1-based card number")
    add_text_opts(pcr)
    pcr.add_argument("--label", help="Label for the new card (default: keep the old one)")
    pcr.add_argument("--override", action="store_true", help="Allow changes to protected columns")
    pcp = csub.add_parser("patch", help="Append a corrective card")
    pcp.add_argument("deck")
    add_text_opts(pcp)
    pcp.add_argument("--label", help="Label for the patch card (default 'patch')")

    # seq
    pq = sub.add_parser("seq", help="Sequence numbers")
    qsub = pq.add_subparsers(dest="seq_cmd", required=True)
    pqn = qsub.add_parser("number", help="Punch sequence numbers")
    pqn.add_argument("deck")
    pqn.add_argument("--start", type=int, default=10, help="First sequence number")
    pqn.add_argument("--step", type=int, default=10, help="Sequence increment")
    pqn.add_argument("--columns", type=span_arg, default=SEQUENCE_SPAN, help="Column span (default 73-80)")
    pqn.add_argument("--cards", help="Only these card numbers, e.g. 1..10")
    pqn.add_argument("--trace-file", help="Write JSONL trace to file")
    pqs = qsub.add_parser("sort", help="Reorder a deck by its sequence numbers")
    pqs.add_argument("deck")
    pqs.add_argument("--columns", type=span_arg, default=SEQUENCE_SPAN, help="Column span (default 73-80)")
    pqs.add_argument("--trace-file", help="Write JSONL trace to file")

    # verify
    pv = sub.add_parser("verify", help="Verify a deck against a second keying pass")
    vsub = pv.add_subparsers(dest="verify_cmd", required=True)
    pvs = vsub.add_parser("start", help="Store the deck text as the verification baseline")
    pvs.add_argument("deck")
    pvp = vsub.add_parser("pass", help="Compare re-keyed text with the baseline")
    pvp.add_argument("deck")
    add_text_opts(pvp)
    pvp.add_argument("--mask", type=span_arg, action="append", help="Ignore a column span (repeatable)")
    pvp.add_argument("--strict", action="store_true", help="Exit 1 when anything differs")
    pvr = vsub.add_parser("report", help="Show the last verification diff")
    pvr.add_argument("deck")

    # templates
    sub.add_parser("templates", help="List card layouts")

    return p


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

HANDLERS = {
    "encode": cmd_encode,
    "decode": cmd_decode,
    "render": cmd_render,
    ("deck", "new"): cmd_deck_new,
    ("deck", "show"): cmd_deck_show,
    ("deck", "slice"): cmd_deck_slice,
    ("deck", "info"): cmd_deck_info,
    ("deck", "merge"): cmd_deck_merge,
    ("card", "replace"): cmd_card_replace,
    ("card", "patch"): cmd_card_patch,
    ("seq", "number"): cmd_seq_number,
    ("seq", "sort"): cmd_seq_sort,
    "verify": cmd_verify,
    "templates": cmd_templates,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose or args.log_file:
        setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    if args.cmd == "deck":
        key = ("deck", args.deck_cmd)
    elif args.cmd == "card":
        key = ("card", args.card_cmd)
    elif args.cmd == "seq":
        key = ("seq", args.seq_cmd)
    else:
        key = args.cmd

    try:
        return HANDLERS[key](args)
    except (PunchError, ValueError, OSError) as e:
        log.debug("command %s failed", key, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
