#!/usr/bin/env python3
"""
Zeami Watcher Benchmark Script.

Performance benchmarks for the filter, classifier and debouncer.
Requires Python 3.11+.

Usage:
    python scripts/benchmark.py /path/to/project
"""

import argparse
import statistics
import sys
import threading
import time
from pathlib import Path
from typing import Callable, TypeVar

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from utils.logger import configure_logging, get_logger
from watcher.classifier import Classifier
from watcher.debouncer import Debouncer
from watcher.filters import EventFilter
from watcher.models import EventKind, RawEvent


configure_logging()
logger = get_logger("benchmark")

T = TypeVar("T")

MAX_PATHS = 20_000


def benchmark(name: str, func: Callable[[], T], iterations: int = 5) -> tuple[T, dict]:
    """
    Benchmark a function.

    Returns:
        Tuple of (result, stats)
    """
    times = []
    result = None

    for _ in range(iterations):
        start = time.perf_counter()
        result = func()
        elapsed = time.perf_counter() - start
        times.append(elapsed * 1000)  # Convert to ms

    stats = {
        "name": name,
        "iterations": iterations,
        "min_ms": min(times),
        "max_ms": max(times),
        "mean_ms": statistics.mean(times),
        "median_ms": statistics.median(times),
        "stdev_ms": statistics.stdev(times) if len(times) > 1 else 0,
    }

    return result, stats


def print_stats(stats: dict) -> None:
    """Print benchmark statistics."""
    print(f"\n  {stats['name']}:")
    print(f"    Mean:   {stats['mean_ms']:.2f}ms")
    print(f"    Median: {stats['median_ms']:.2f}ms")
    print(f"    Min:    {stats['min_ms']:.2f}ms")
    print(f"    Max:    {stats['max_ms']:.2f}ms")
    if stats["stdev_ms"] > 0:
        print(f"    StdDev: {stats['stdev_ms']:.2f}ms")


def collect_paths(root: Path) -> list[Path]:
    """Walk the project, including the noise the filter is meant to drop."""
    paths = []
    for path in root.rglob("*"):
        if path.is_file():
            paths.append(path)
            if len(paths) >= MAX_PATHS:
                break
    return paths


def debounce_burst(events_per_path: int, path_count: int, delay_ms: int) -> int:
    """Submit a burst and wait until every path settled. Returns emissions."""
    settled = threading.Semaphore(0)
    debouncer = Debouncer(delay_ms, lambda entry: settled.release())
    paths = [Path(f"/bench/src/file_{i}.py") for i in range(path_count)]

    for _ in range(events_per_path):
        for path in paths:
            debouncer.submit(RawEvent(path, EventKind.MODIFIED))

    emitted = 0
    for _ in paths:
        if settled.acquire(timeout=5.0):
            emitted += 1
    debouncer.stop()
    return emitted


def run_benchmarks(project_path: Path) -> None:
    """Run all benchmarks."""
    print("\n=== Zeami Watcher Benchmarks ===")
    print(f"Project: {project_path}")

    paths = collect_paths(project_path)
    print(f"Files: {len(paths)}")

    if not paths:
        print("No files found!")
        return

    event_filter = EventFilter(project_root=project_path)
    classifier = Classifier(project_path)

    suppressed, stats = benchmark(
        "Filter all paths",
        lambda: sum(1 for p in paths if event_filter.should_suppress(p)),
    )
    print_stats(stats)
    print(f"    Paths/sec:  {len(paths) / (stats['mean_ms'] / 1000):.0f}")
    print(f"    Suppressed: {suppressed} ({suppressed / len(paths) * 100:.1f}%)")

    passed = [p for p in paths if event_filter.should_watch(p)]
    if passed:
        events, stats = benchmark(
            "Classify passing paths",
            lambda: [classifier.classify(p, EventKind.MODIFIED) for p in passed],
        )
        print_stats(stats)
        print(f"    Paths/sec: {len(passed) / (stats['mean_ms'] / 1000):.0f}")

        by_category: dict[str, int] = {}
        for event in events:
            by_category[event.category.value] = by_category.get(event.category.value, 0) + 1
        for category, count in sorted(by_category.items()):
            print(f"    {category}: {count}")

    emitted, stats = benchmark(
        "Debounce 100 paths x 50 events (20ms window)",
        lambda: debounce_burst(50, 100, 20),
        iterations=3,
    )
    print_stats(stats)
    print(f"    Emitted: {emitted} (expected 100)")

    logger.info("benchmark_complete", files=len(paths), suppressed=suppressed, emitted=emitted)
    print("\n=== Benchmark Complete ===\n")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run Zeami Watcher performance benchmarks"
    )
    parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path.cwd(),
        help="Project to benchmark against",
    )

    args = parser.parse_args()

    if not args.path.exists():
        print(f"Error: Path does not exist: {args.path}")
        sys.exit(1)

    try:
        run_benchmarks(args.path.resolve())
    except KeyboardInterrupt:
        print("\nCancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
