from .errors import RemoteErrorCode, SyncError, RemoteFileError, EncodingError, NotFoundError
from .remote_channel import RemoteEntry, RemoteFileChannel, SftpChannel, build_channel
from .flat_codec import FlatRecordCodec
from .consolidated_merger import ConsolidatedFileMerger, MergeResult
from .snapshot_exporter import BulkSnapshotExporter
from .import_archiver import ImportArchiver
from .order_sender import PurchaseOrderSender
from .database import CatalogDatabase
from .scratch_store import SimulatedOrderStore
from .simulation import OrderSimulationEngine

__all__ = [
    "RemoteErrorCode", "SyncError", "RemoteFileError", "EncodingError", "NotFoundError",
    "RemoteEntry", "RemoteFileChannel", "SftpChannel", "build_channel",
    "FlatRecordCodec", "ConsolidatedFileMerger", "MergeResult",
    "BulkSnapshotExporter", "ImportArchiver", "PurchaseOrderSender",
    "CatalogDatabase", "SimulatedOrderStore", "OrderSimulationEngine",
]
