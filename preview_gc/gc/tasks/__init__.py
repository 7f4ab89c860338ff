"""GC tasks for cleaning up preview resources."""

from preview_gc.gc.tasks.orphan_loadbalancer import OrphanLoadBalancerGC
from preview_gc.gc.tasks.stale_preview import StalePreviewGC

__all__ = [
    "StalePreviewGC",
    "OrphanLoadBalancerGC",
]
