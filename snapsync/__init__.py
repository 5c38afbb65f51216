# This file re-exports the public API

from snapsync.models import (
    AcquisitionSession,
    AcquisitionState,
    CacheEntry,
    PreparedFile,
    ProjectSnapshot,
    TriggerControl,
)
from snapsync.errors import (
    AcquisitionError,
    AcquisitionTimeoutError,
    ActionNotFoundError,
    ArchiveError,
    IgnoreRuleError,
    InterceptionError,
    SnapsyncError,
    TransportDecodeError,
    TriggerNotFoundError,
)
from snapsync.fileutils import (
    compute_content_hash,
    decode_transport_payload,
    encode_transport_payload,
    filter_by_ignore_rules,
    ignored_paths,
    normalize_for_comparison,
    prepare_for_sync,
)
from snapsync.idle import AsyncioIdleScheduler, IdleDeadline, IdleMonitor
from snapsync.cache import SnapshotCache
from snapsync.acquisition import AcquisitionTimings, DownloadInterception, SnapshotAcquisitionEngine
from snapsync.archive import extract_archive
from snapsync.service import ProjectSnapshotService
from snapsync.config import Settings, load_settings
from snapsync.main import main

# Version information
__version__ = '0.1.0'
