"""Latency benchmark for CharStats hot paths.

Both hooks run inside a host's event handlers, so they have to stay cheap:
- Stat extraction on every rendered chat message
- Request injection on every outbound generation request
- Comparison ranking against the built-in catalog

Usage:
    python -m benchmarks.latency
    python benchmarks/latency.py
"""

import json
import statistics
import time
from typing import Any, Dict, List

from charstats import StatsApp, extract_stat_changes, normalize_length, rank_comparisons
from charstats.types import OutboundRequest


def _timed(fn, iterations: int = 1000) -> Dict[str, float]:
    """Run fn() `iterations` times and return latency stats in ms."""
    times: List[float] = []
    for _ in range(iterations):
        t0 = time.perf_counter()
        fn()
        elapsed = (time.perf_counter() - t0) * 1000
        times.append(elapsed)

    times.sort()
    return {
        "mean_ms": round(statistics.mean(times), 3),
        "median_ms": round(statistics.median(times), 3),
        "p95_ms": round(times[int(len(times) * 0.95)], 3),
        "p99_ms": round(times[int(len(times) * 0.99)], 3),
        "min_ms": round(times[0], 3),
        "max_ms": round(times[-1], 3),
        "iterations": iterations,
    }


def bench_extract_plain() -> Dict[str, float]:
    """Extraction on ordinary narration with no stat phrasing."""
    text = (
        "The rain kept falling as they crossed the bridge. Alex pulled the "
        "hood tighter and said nothing for a long while."
    )
    return _timed(lambda: extract_stat_changes(text))


def bench_extract_all_rules() -> Dict[str, float]:
    """Extraction on a message where every rule fires."""
    text = (
        "Alex has grown a tail, gained strength, her speed increased to 12 "
        "and her height is now 7."
    )
    return _timed(lambda: extract_stat_changes(text))


def bench_observe_chat(app: StatsApp) -> Dict[str, float]:
    """Full chat hook: extract, apply in one batch, persist, notify."""
    text = "Her stamina is now 40."
    return _timed(lambda: app.observe_chat(text), iterations=500)


def bench_inject(app: StatsApp, n_messages: int = 50) -> Dict[str, float]:
    """Inject into a chat-completions body with a long message history."""
    body = json.dumps({
        "messages": [
            {"role": "user" if i % 2 else "assistant", "content": f"Message number {i} " * 20}
            for i in range(n_messages)
        ],
        "temperature": 0.8,
    })
    request = OutboundRequest("POST", "/api/backends/chat-completions/generate", body)
    return _timed(lambda: app.prepare_request(request))


def bench_compare() -> Dict[str, float]:
    """Normalize a height and rank the catalog."""
    return _timed(lambda: rank_comparisons(normalize_length(6, " ft")))


def main():
    print("CharStats Latency Benchmark")
    print("=" * 50)
    print()

    app = StatsApp()
    scope = app.active_scope()
    app.store.add_stat(scope, "Height", "6", "ft")
    app.store.add_stat(scope, "Weight", "180", "lbs")
    app.store.add_stat(scope, "Mood", "determined")

    benchmarks = [
        ("extract_plain", lambda: bench_extract_plain()),
        ("extract_all_rules", lambda: bench_extract_all_rules()),
        ("observe_chat", lambda: bench_observe_chat(app)),
        ("inject_50_messages", lambda: bench_inject(app, 50)),
        ("compare", lambda: bench_compare()),
    ]

    results: Dict[str, Any] = {}
    for name, run in benchmarks:
        print(f"Running: {name} ...")
        r = run()
        results[name] = r
        print(f"  mean={r['mean_ms']:.3f}ms  p95={r['p95_ms']:.3f}ms  p99={r['p99_ms']:.3f}ms")

    print()
    print("=" * 50)
    print("Summary:")
    print()
    for name, r in results.items():
        print(f"  {name:30s}  mean={r['mean_ms']:7.3f}ms  p95={r['p95_ms']:7.3f}ms")

    # Save results
    output_path = "benchmarks/latency_results.json"
    with open(output_path, "w") as f:
        json.dump(results, f, indent=2)
    print(f"\nResults saved to {output_path}")


if __name__ == "__main__":
    main()
