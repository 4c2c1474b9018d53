#!/usr/bin/env python3
"""Run the citation cache sweep once (invoke daily from cron)."""

import asyncio
import logging
import sys

from citation_cache.jobs.sweeper import sweep_stale_citations


async def main() -> int:
    """Sweep stale citations and report the result."""
    print("Sweeping stale citations...")
    try:
        evicted = await sweep_stale_citations()
    except Exception as e:
        print(f"✗ Sweep failed: {e}")
        return 1
    print(f"✓ Evicted {evicted} entries")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main()))
