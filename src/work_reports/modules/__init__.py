from .artifact_delivery import ArtifactDeliveryOrchestrator, DeliveryRequest, DeliveryResult
from .identity_provider import IdentityProvider
from .object_storage import LocalObjectStorage, StorageError
from .pdf_renderer import PdfRenderer
from .record_repository import SqliteRecordRepository
from .report_aggregator import ReportAggregator
from .report_service import GenerationResult, ReportService
