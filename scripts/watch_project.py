#!/usr/bin/env python3
"""
Zeami Watcher Live Demo.

Watches a project and prints every classified change until interrupted.
Requires Python 3.11+.

Usage:
    python scripts/watch_project.py /path/to/project --preset development
"""

import argparse
import sys
import time
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from utils.logger import configure_logging
from watcher.config import WatcherPreset, preset_config
from watcher.errors import ConfigurationError, WatchSourceError
from watcher.models import ClassifiedEvent, WatchErrorEvent
from watcher.service import WatcherService


def print_event(item: ClassifiedEvent | WatchErrorEvent) -> None:
    """Print one output item."""
    if isinstance(item, WatchErrorEvent):
        label = "FATAL" if item.fatal else "WARN"
        suffix = " (switched to polling)" if item.fallback else ""
        print(f"[{label}] {item.error}{suffix}")
        return

    marker = "!" if item.is_high_priority else " "
    coalesced = f" x{item.coalesced_count}" if item.coalesced_count > 1 else ""
    print(
        f"{marker} {item.category.value:<22} {item.kind.value:<9} "
        f"[{item.source}] {item.path}{coalesced}"
    )


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Watch a project and print classified file changes"
    )
    parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path.cwd(),
        help="Project root to watch",
    )
    parser.add_argument(
        "--preset",
        choices=[p.value for p in WatcherPreset],
        default=WatcherPreset.DEVELOPMENT.value,
        help="Named configuration to start from",
    )
    parser.add_argument(
        "--debounce-ms",
        type=int,
        default=None,
        help="Override the preset debounce delay",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        help="Use poll mode instead of native notifications",
    )
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        help="Extra filter rule, e.g. 'glob:*.bak' (repeatable)",
    )

    args = parser.parse_args()

    if not args.path.is_dir():
        print(f"Error: Path is not a directory: {args.path}")
        sys.exit(1)

    config = preset_config(args.preset, project_root=args.path)
    changes: dict = {"force_polling": args.poll, "filter_rules": tuple(args.ignore)}
    if args.debounce_ms is not None:
        changes["debounce_ms"] = args.debounce_ms
    config = config.with_changes(**changes)
    configure_logging(verbose=config.verbose)

    service = WatcherService(config, on_event=print_event)
    try:
        warnings = service.start()
    except (ConfigurationError, WatchSourceError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    for warning in warnings:
        print(f"Skipping target: {warning}")

    print(f"Watching {config.project_root} ({service.source_name}), Ctrl+C to stop")
    for target in service.targets:
        print(f"  - {target.path} ({target.description}, priority {target.priority})")

    try:
        while service.is_running():
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        service.stop()

    stats = service.get_stats()
    print("\nStatistics:")
    print(f"  Raw events:     {stats.raw_count}")
    print(f"  Filtered out:   {stats.filtered_out_count} ({stats.filter_efficiency:.1f}%)")
    print(f"  Emitted:        {stats.emitted_count} ({stats.throughput:.1f}% of passed)")
    print(f"  Dropped:        {stats.dropped_count}")
    print(f"  Errors:         {stats.error_count}")


if __name__ == "__main__":
    main()
