from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from questforge_api.models import Challenge, Event, Quest, QuestCompletion


_HTTP_LOCK = Lock()
_HTTP_REQUESTS: Counter[tuple[str, str, str]] = Counter()
_HTTP_LATENCY_BUCKETS_S: tuple[float, ...] = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
)
_HTTP_LATENCY_BINS: dict[tuple[str, str], list[int]] = {}
_HTTP_LATENCY_SUM_S: dict[tuple[str, str], float] = {}
_HTTP_LATENCY_COUNT: dict[tuple[str, str], int] = {}


def observe_http_request(
    *,
    path: str,
    method: str,
    status: str,
    duration_ms: float | None = None,
) -> None:
    key = (str(path), str(method), str(status))
    latency_key = (str(path), str(method))

    dur_s: float | None = None
    if duration_ms is not None:
        dur_s = max(0.0, float(duration_ms) / 1000.0)

    with _HTTP_LOCK:
        _HTTP_REQUESTS[key] += 1
        if dur_s is None:
            return

        bins = _HTTP_LATENCY_BINS.get(latency_key)
        if bins is None:
            bins = [0 for _ in range(len(_HTTP_LATENCY_BUCKETS_S) + 1)]
            _HTTP_LATENCY_BINS[latency_key] = bins

        idx = len(_HTTP_LATENCY_BUCKETS_S)
        for i, edge in enumerate(_HTTP_LATENCY_BUCKETS_S):
            if dur_s <= float(edge):
                idx = i
                break
        bins[idx] += 1

        _HTTP_LATENCY_SUM_S[latency_key] = float(
            _HTTP_LATENCY_SUM_S.get(latency_key, 0.0)
        ) + float(dur_s)
        _HTTP_LATENCY_COUNT[latency_key] = int(
            _HTTP_LATENCY_COUNT.get(latency_key, 0)
        ) + 1


def reset_http_metrics() -> None:
    with _HTTP_LOCK:
        _HTTP_REQUESTS.clear()
        _HTTP_LATENCY_BINS.clear()
        _HTTP_LATENCY_SUM_S.clear()
        _HTTP_LATENCY_COUNT.clear()


def _snapshot_http() -> list[tuple[tuple[str, str, str], int]]:
    with _HTTP_LOCK:
        return list(_HTTP_REQUESTS.items())


def _snapshot_latency() -> list[tuple[tuple[str, str], list[int], float, int]]:
    with _HTTP_LOCK:
        return [
            (
                key,
                list(bins),
                float(_HTTP_LATENCY_SUM_S.get(key, 0.0)),
                int(_HTTP_LATENCY_COUNT.get(key, 0)),
            )
            for key, bins in _HTTP_LATENCY_BINS.items()
        ]


def _fmt_labels(**labels: str) -> str:
    def esc(value: str) -> str:
        return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')

    parts = [f'{k}="{esc(v)}"' for k, v in labels.items()]
    return "{" + ",".join(parts) + "}" if parts else ""


def _render_counter(
    *,
    name: str,
    help_text: str,
    rows: Iterable[tuple[dict[str, str], int]],
    kind: str = "counter",
) -> str:
    lines: list[str] = [
        f"# HELP {name} {help_text}",
        f"# TYPE {name} {kind}",
    ]
    for labels, value in rows:
        lines.append(f"{name}{_fmt_labels(**labels)} {int(value)}")
    return "\n".join(lines) + "\n"


def _render_histogram(
    *,
    name: str,
    help_text: str,
    buckets: Iterable[float],
    rows: Iterable[tuple[dict[str, str], list[int], float, int]],
) -> str:
    lines: list[str] = [
        f"# HELP {name} {help_text}",
        f"# TYPE {name} histogram",
    ]
    bucket_edges = [float(b) for b in buckets]
    for labels, bin_counts, sum_s, count in rows:
        cumulative = 0
        for i, edge in enumerate(bucket_edges):
            cumulative += int(bin_counts[i]) if i < len(bin_counts) else 0
            lines.append(f"{name}_bucket{_fmt_labels(**labels, le=str(edge))} {cumulative}")
        if len(bin_counts) > len(bucket_edges):
            cumulative += int(bin_counts[len(bucket_edges)])
        lines.append(f"{name}_bucket{_fmt_labels(**labels, le='+Inf')} {cumulative}")
        lines.append(f"{name}_sum{_fmt_labels(**labels)} {float(sum_s):.6f}")
        lines.append(f"{name}_count{_fmt_labels(**labels)} {int(count)}")
    return "\n".join(lines) + "\n"


def render_prometheus_metrics(*, db: Session) -> str:
    out: list[str] = []

    out.append(
        _render_counter(
            name="questforge_http_requests_total",
            help_text="Total HTTP requests processed by this API process.",
            rows=[
                ({"path": path, "method": method, "status": status}, count)
                for (path, method, status), count in sorted(_snapshot_http())
            ],
        )
    )
    out.append(
        _render_histogram(
            name="questforge_http_request_duration_seconds",
            help_text="HTTP request duration (seconds) by route template and method (in-process).",
            buckets=_HTTP_LATENCY_BUCKETS_S,
            rows=[
                ({"path": path, "method": method}, bins, sum_s, count)
                for ((path, method), bins, sum_s, count) in sorted(_snapshot_latency())
            ],
        )
    )

    quest_rows = db.execute(
        select(Quest.frequency, Quest.active, func.count(Quest.id)).group_by(
            Quest.frequency, Quest.active
        )
    ).all()
    out.append(
        _render_counter(
            name="questforge_quests",
            help_text="Registered quests by frequency and active flag.",
            kind="gauge",
            rows=[
                ({"frequency": str(freq), "active": str(bool(active)).lower()}, int(cnt or 0))
                for (freq, active, cnt) in quest_rows
            ],
        )
    )

    completions = db.scalar(select(func.count()).select_from(QuestCompletion)) or 0
    out.append(
        _render_counter(
            name="questforge_quest_completions_total",
            help_text="Total recorded quest completions.",
            rows=[({}, int(completions))],
        )
    )

    challenges = db.scalar(
        select(func.count(Challenge.id)).where(Challenge.active.is_(True))
    ) or 0
    out.append(
        _render_counter(
            name="questforge_active_challenges",
            help_text="Challenges currently flagged active.",
            kind="gauge",
            rows=[({}, int(challenges))],
        )
    )

    ev_rows = db.execute(
        select(Event.type, func.count(Event.id)).group_by(Event.type)
    ).all()
    out.append(
        _render_counter(
            name="questforge_domain_events_total",
            help_text="Domain events recorded in the event log, by type.",
            rows=[({"type": str(t)}, int(cnt or 0)) for (t, cnt) in sorted(ev_rows)],
        )
    )

    return "\n".join(out)
