"""GC (Garbage Collection) service for preview environments.

This module provides garbage collection for:
- Stale preview environments (StalePreviewGC)
- Orphan load balancers (OrphanLoadBalancerGC)

Usage:
    from preview_gc.gc.lifecycle import build_scheduler

    scheduler = build_scheduler(settings)
    results = await scheduler.run_once()
"""

from preview_gc.gc.base import GCResult, GCTask
from preview_gc.gc.scheduler import GCScheduler

__all__ = [
    "GCTask",
    "GCResult",
    "GCScheduler",
]
