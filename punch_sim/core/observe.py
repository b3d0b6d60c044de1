# core/observe.py: trace sink for deck mutations, plus a reader/summary for trace files
import json, time
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional


class TraceSink:
    """Appends events as JSON lines to a file path, or as dicts to a list-like collector."""
    def __init__(self, path: Optional[str] = None, collector: Optional[list] = None):
        self.path = path
        self.collector = collector

    def emit(self, event: Dict[str, Any]):
        if self.path:
            line = json.dumps(event, separators=(",", ":"), ensure_ascii=False)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        elif self.collector is not None:
            self.collector.append(event)


def now_ts() -> float:
    return time.time()


def read_events(path: str) -> List[Dict[str, Any]]:
    events = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                events.append(json.loads(line))
    return events


def summarize(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts by operation and the set of cards touched by a run of events."""
    ops = Counter()
    cards = set()
    for ev in events:
        ops[ev.get("op_name", "?")] += 1
        if ev.get("card_index") is not None:
            cards.add(ev["card_index"])
    return {"by_op": dict(ops), "cards_touched": sorted(cards)}
