from __future__ import annotations

import logging
import math
import warnings
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from .errors import DataIntegrityWarning
from .models import (
    UNKNOWN_TRIAGE_RANK,
    IntakeEntry,
    QueueSummary,
    RankedEntry,
    enum_value,
    triage_rank,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_arrival_time(raw: datetime | str | None) -> datetime | None:
    if isinstance(raw, datetime):
        return to_naive_utc(raw)
    if isinstance(raw, str) and raw.strip():
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_naive_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


@dataclass
class TriageQueueRanker:
    clock: Callable[[], datetime] = field(default=utc_now)

    def rank_queue(
        self,
        entries: Iterable[IntakeEntry],
        now: datetime | None = None,
    ) -> list[RankedEntry]:
        now = to_naive_utc(now) if now is not None else self.clock()

        keyed = []
        for position, entry in enumerate(entries):
            rank = triage_rank(entry.triage_level)
            arrival = parse_arrival_time(entry.arrival_time)

            problems = []
            if rank == UNKNOWN_TRIAGE_RANK:
                problems.append(("triage_level", f"unrecognized triage level {entry.triage_level!r}"))
            if arrival is None:
                problems.append(("arrival_time", "a missing or unparsable arrival time"))

            warning = None
            if problems:
                warning = DataIntegrityWarning(
                    f"Triage entry {entry.id} has " + " and ".join(text for _, text in problems) + ".",
                    record_id=entry.id,
                    field=",".join(name for name, _ in problems),
                )
                logger.warning("%s", warning)
                warnings.warn(warning, stacklevel=2)

            if arrival is None:
                ranked = RankedEntry(entry=entry, wait_minutes=None, integrity_warning=warning)
                # Untimed entries trail the timed ones of the same level.
                sort_key = (rank, 1, datetime.max, position)
            else:
                wait = math.floor((now - arrival).total_seconds() / 60)
                ranked = RankedEntry(entry=entry, wait_minutes=wait, integrity_warning=warning)
                sort_key = (rank, 0, arrival, position)
            keyed.append((sort_key, ranked))

        keyed.sort(key=lambda item: item[0])
        return [ranked for _, ranked in keyed]

    @staticmethod
    def summarize(ranked: Iterable[RankedEntry]) -> QueueSummary:
        items = list(ranked)
        by_level = Counter(enum_value(item.entry.triage_level) for item in items)
        by_status = Counter(enum_value(item.entry.status) for item in items)
        waits = [item.wait_minutes for item in items if item.wait_minutes is not None]

        summary = QueueSummary(
            total=len(items),
            by_level=dict(by_level),
            by_status=dict(by_status),
            missing_arrival_times=len(items) - len(waits),
        )
        if waits:
            summary.average_wait_minutes = round(sum(waits) / len(waits), 1)
            summary.longest_wait_minutes = max(waits)
            summary.shortest_wait_minutes = min(waits)
        return summary
