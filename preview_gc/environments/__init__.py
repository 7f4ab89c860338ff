"""Preview environments of the CoreDev and Harvester backends."""

from preview_gc.environments.base import DNSRecord, PreviewEnvironment
from preview_gc.environments.coredev import CoreDevBackend, CoreDevPreviewEnvironment
from preview_gc.environments.harvester import HarvesterBackend, HarvesterPreviewEnvironment
from preview_gc.environments.inventory import EnvironmentInventory

# Every backend variant; used to predict namespaces from branch names
VARIANTS: tuple[type[PreviewEnvironment], ...] = (
    CoreDevPreviewEnvironment,
    HarvesterPreviewEnvironment,
)

__all__ = [
    "DNSRecord",
    "PreviewEnvironment",
    "CoreDevBackend",
    "CoreDevPreviewEnvironment",
    "HarvesterBackend",
    "HarvesterPreviewEnvironment",
    "EnvironmentInventory",
    "VARIANTS",
]
