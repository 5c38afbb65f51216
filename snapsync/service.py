"""
Service module for project snapshot sync.

Ties the acquisition engine, the archive extraction and the cache together into
the single entry point the sync logic calls.
"""

from typing import Callable, Dict, Optional

from snapsync.acquisition import SnapshotAcquisitionEngine
from snapsync.archive import extract_archive
from snapsync.cache import SnapshotCache
from snapsync.fileutils import encode_transport_payload, prepare_for_sync
from snapsync.models import PreparedFile, ProjectSnapshot
from snapsync.utils import extract_project_id_from_url


class ProjectSnapshotService:
    """
    Serves project snapshots, downloading them only when the cache cannot.
    """

    def __init__(self, engine: SnapshotAcquisitionEngine, cache: SnapshotCache,
                 url_provider: Callable[[], Optional[str]]):
        """
        Initialize the service.

        Args:
            engine: Engine used to acquire the project archive
            cache: Cache of extracted snapshots
            url_provider: Function returning the current page URL
        """
        self.engine = engine
        self.cache = cache
        self.url_provider = url_provider
        self.current_project_id: Optional[str] = None

    async def download_project_archive(self) -> bytes:
        return await self.engine.acquire_snapshot_archive()

    async def get_project_files(self, force_refresh: bool = False) -> ProjectSnapshot:
        """
        Return the current project's snapshot.

        Args:
            force_refresh: Download a fresh archive even if the cache holds one

        Returns:
            Dictionary mapping file paths to content
        """
        self.current_project_id = extract_project_id_from_url(self.url_provider())
        if not self.current_project_id:
            print("Could not determine project ID from URL, downloading without cache")
            return extract_archive(await self.download_project_archive())

        if not force_refresh:
            cached_files = self.cache.get_cached_project_files(self.current_project_id)
            if cached_files is not None:
                return cached_files

        suffix = " (forced refresh)" if force_refresh else ""
        print(f"Downloading project files for {self.current_project_id}{suffix}")
        files = extract_archive(await self.download_project_archive())

        self.cache.cache_project_files(self.current_project_id, files)
        return files

    async def get_prepared_files(self, force_refresh: bool = False) -> Dict[str, PreparedFile]:
        """Return the current project's files filtered, normalized and hashed for comparison."""
        return prepare_for_sync(await self.get_project_files(force_refresh))

    async def get_archive_as_base64(self) -> str:
        """Download the archive and encode it for passing across a message boundary."""
        return encode_transport_payload(await self.download_project_archive())

    def invalidate_cache(self):
        if self.current_project_id:
            self.cache.invalidate_cache(self.current_project_id)
