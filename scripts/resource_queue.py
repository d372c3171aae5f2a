#!/usr/bin/env python3
"""Sharing a small pool of model sessions between many tiles.

This script shows how to:
- Lend a fixed set of resources to tile tasks with ResourceQueue
- Bound the whole run with a timeout token
- Collect per-tile metrics while tiles complete out of order
"""

import asyncio
import logging

from patchflow import CancellationToken, MetricsCallback, Patchify, PatchConfig, ResourceQueue
from patchflow.examples import DelayResource, generate_noise_image, invert_tile
from patchflow.metrics import mean_absolute_error


async def run_with_pool(config: PatchConfig):
    image = generate_noise_image(2048, 1536)
    patchify = Patchify.from_config(image, config)
    sessions = [DelayResource(f"session-{i}") for i in range(config.workers)]
    queue = ResourceQueue(sessions)

    async def infer(tile, session):
        # pretend inference takes 20ms per tile
        await session(20)
        return invert_tile(tile)

    token = CancellationToken.timeout(config.timeout) if config.timeout else None
    metrics = MetricsCallback(verbose=True)

    print(f"Processing {len(patchify)} tiles on {queue.pool_size} sessions")
    result = await patchify.process_with(queue, infer, cancel_token=token, callbacks=[metrics])

    for session in sessions:
        print(f"  {session!r}, max concurrent calls: {session.max_active}")
    print(f"Difference to source: {mean_absolute_error(result, image):.2f}")


async def cancel_midway():
    """Cancel a run from outside; queued tiles never start."""
    patchify = Patchify(generate_noise_image(1024, 1024), 128)
    queue = ResourceQueue([DelayResource("only")])
    token = CancellationToken()

    async def slow(tile, session):
        await session(10)
        return tile

    asyncio.get_running_loop().call_later(0.05, token.cancel, "user pressed stop")
    try:
        await patchify.process_with(queue, slow, cancel_token=token)
    except Exception as exc:
        print(f"Stopped: {exc}")


def main():
    logging.basicConfig(level=logging.INFO)
    print("=== Resource pool ===")
    asyncio.run(run_with_pool(PatchConfig(tile_size=256, min_overlap=32, workers=4, timeout=60)))
    print("\n=== Cancellation ===")
    asyncio.run(cancel_midway())


if __name__ == "__main__":
    main()
