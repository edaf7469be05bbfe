# Services Package
# Tally transport, report pipelines and action dispatch

from .tally_service import TallyService
from .volume_profiler import VolumeProfiler
from .entity_resolver import EntityResolver
from .tally_manager import TallyManager
from .invoice_service import InvoiceService
from .export_service import ExportService
from .dispatcher import ActionDispatcher, SessionRegistry, TallySession, execute
from .health_service import HealthService

__all__ = [
    "TallyService",
    "VolumeProfiler",
    "EntityResolver",
    "TallyManager",
    "InvoiceService",
    "ExportService",
    "ActionDispatcher",
    "SessionRegistry",
    "TallySession",
    "execute",
    "HealthService"
]
