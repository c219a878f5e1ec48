"""Sequential batch driver shared by the updater scripts."""

import logging
import time
from typing import Any, Callable, Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def filter_resorts(resorts: Sequence[T], pattern: str | None) -> list[T]:
    """Keep resorts whose slug contains ``pattern`` (case-insensitive)."""
    if not pattern:
        return list(resorts)
    needle = pattern.lower()
    return [r for r in resorts if needle in _slug_of(r).lower()]


def _slug_of(item: Any) -> str:
    if isinstance(item, str):
        return item.rsplit("/", 1)[-1]
    if isinstance(item, dict):
        return item.get("slug", "")
    return getattr(item, "slug", "")


def apply_window(items: Sequence[T], skip: int = 0, limit: int | None = None) -> list[T]:
    items = list(items)
    if skip and skip > 0:
        items = items[skip:]
    if limit and limit > 0:
        items = items[:limit]
    return items


def iter_batches(items: Sequence[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def new_stats(*counters: str) -> dict[str, int]:
    stats = {"total": 0, "updated": 0, "skipped": 0, "errors": 0}
    for name in counters:
        stats[name] = 0
    return stats


def run_batch(
    items: Sequence[T],
    process: Callable[[T], None],
    stats: dict[str, int],
    label: Callable[[T], str],
    batch_size: int | None = None,
    batch_delay_seconds: float = 0.0,
    item_delay_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, int]:
    """Run ``process`` once per item, in order.

    A failing item is logged and counted under ``errors``; the batch always
    continues. Items are grouped into batches of ``batch_size`` with
    ``batch_delay_seconds`` between groups, and ``item_delay_seconds``
    between consecutive items. No delay follows the last item.
    """
    total = len(items)
    stats["total"] = total
    size = batch_size or total or 1
    batches = list(iter_batches(items, size))

    position = 0
    for batch_number, batch in enumerate(batches, start=1):
        if len(batches) > 1:
            print(f"\n--- Batch {batch_number}/{len(batches)} ---")

        for item in batch:
            position += 1
            print(f"[{position}/{total}] {label(item)}")
            try:
                process(item)
            except Exception as e:
                logger.error(f"Error processing {label(item)}: {e}")
                stats["errors"] += 1

            if item_delay_seconds > 0 and position < total:
                sleep(item_delay_seconds)

        if batch_delay_seconds > 0 and batch_number < len(batches):
            sleep(batch_delay_seconds)

    return stats


def print_summary(title: str, stats: dict[str, Any], dry_run: bool = False) -> None:
    """Print the end-of-run summary block."""
    print(f"\n=== {title} Summary ===")
    width = max((len(key) for key in stats), default=0) + 2
    for key, value in stats.items():
        label = key.replace("_", " ").capitalize() + ":"
        if isinstance(value, float):
            print(f"{label:<{width}} {value:.4f}")
        else:
            print(f"{label:<{width}} {value}")
    if dry_run:
        print("\n[DRY RUN] No changes were written")
