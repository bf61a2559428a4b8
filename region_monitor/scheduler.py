
# Batch scheduling: bounded concurrency without a worker pool.

# Items are cut into consecutive batches. Every item in a batch runs
# concurrently on the event loop; the next batch starts only after the
# whole current batch has settled. Peak concurrency is therefore the batch
# size, and wall time is roughly ceil(N / size) * (slowest item per batch).
#
# Used twice per cycle: regions in batches of REGION_BATCH_SIZE, and inside
# each region, addresses in batches of ADDRESS_BATCH_SIZE.

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, Sequence, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def iter_batches(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def run_in_batches(
    items: Sequence[T],
    size: int,
    worker: Callable[[T], Awaitable[R]],
    stop_event: asyncio.Event | None = None,
) -> list[R | BaseException]:
    """
    Run worker over items, `size` at a time, batches strictly in sequence.

    Results come back in input order. An exception raised by one worker is
    returned in its slot rather than aborting its siblings, so callers must
    check for BaseException instances.

    Once stop_event is set no further batch is started; the batch already in
    flight still runs to completion. The returned list is then shorter than
    items.
    """
    results: list[R | BaseException] = []
    batches = list(iter_batches(items, size))

    for index, batch in enumerate(batches, start=1):
        if stop_event is not None and stop_event.is_set():
            log.info("Stop requested, %d of %d batch(es) not started", len(batches) - index + 1, len(batches))
            break
        log.debug("Batch %d/%d: %d item(s)", index, len(batches), len(batch))
        results.extend(await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True))

    return results
