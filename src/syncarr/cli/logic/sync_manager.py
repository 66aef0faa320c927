"""Sync orchestration from the source server to the destination."""

import logging
import os
import time
from datetime import datetime
from typing import Callable, Optional

from ... import events
from ...api.plex import PlexApi, PlexApiError
from ...models import EnhancedItem, FailedItem, SyncStats, TransferStatus
from ...paths import PathMapper, PathMappingError, find_companion_files
from ...transfer import TransferError, Transferrer
from ..core.exceptions import DestinationUnavailableError
from .discovery import ContentDiscovery
from .library_refresh import LibraryRefreshCoordinator
from .matcher import ContentMatcher
from .metadata_sync import MetadataDiffer, MetadataSyncer, MetadataSyncError

logger = logging.getLogger(__name__)


class SyncManager:
    """Runs sync cycles: discover, transfer, clean up, rescan, match, reconcile."""

    def __init__(
        self,
        source: PlexApi,
        destination: PlexApi,
        label: str,
        path_mapper: Optional[PathMapper] = None,
        transferrer: Optional[Transferrer] = None,
        dry_run: bool = False,
        force_full_sync: bool = False,
        refresher: Optional[LibraryRefreshCoordinator] = None,
    ):
        """Initialize sync manager.

        Args:
            source: Source server client
            destination: Destination server client
            label: Label marking items to sync
            path_mapper: Source -> local -> destination path mapping
            transferrer: File transfer client (None skips file sync)
            dry_run: If True, log changes without making them
            force_full_sync: Bypass incremental shortcuts for this manager's runs
            refresher: Library refresh coordinator (built from destination if None)
        """
        self.source = source
        self.destination = destination
        self.label = label
        self.path_mapper = path_mapper or PathMapper()
        self.transferrer = transferrer
        self.dry_run = dry_run
        self.force_full_sync = force_full_sync
        self.discovery = ContentDiscovery(source, label)
        self.matcher = ContentMatcher(destination)
        self.refresher = refresher
        self.differ = MetadataDiffer()
        self.syncer = MetadataSyncer(source, destination, dry_run=dry_run)

    def run_sync_cycle(self) -> SyncStats:
        """Run one full sync cycle.

        Returns:
            SyncStats for the cycle

        Raises:
            DestinationUnavailableError: If the destination cannot be reached
            LibraryRefreshError: If destination libraries cannot be rescanned
            PlexApiError: If source libraries cannot be listed
        """
        stats = SyncStats(force_full_sync=self.force_full_sync)

        try:
            self.destination.test_connection()
        except PlexApiError as e:
            raise DestinationUnavailableError(f"Destination server is unreachable: {e}")

        if self.force_full_sync:
            logger.info("Force full sync requested: processing every labelled item")

        items = self.discovery.discover()
        stats.items_discovered = len(items)
        if not items:
            logger.info(f"No items labelled '{self.label}' found on source")
            stats.end_time = datetime.now()
            return stats

        events.sync_start(len(items))

        if self.transferrer is not None:
            try:
                synced_files = self._transfer_items(items, stats)
                self._cleanup_orphans(synced_files, stats)
            finally:
                # Each run opens its own SSH session
                self.transferrer.close()
            self._refresh_libraries().run()
        else:
            logger.info("No transfer backend configured, skipping file transfer and library refresh")

        matches = self.matcher.match(items)
        stats.matches = len(matches)
        self._sync_metadata(matches, stats)

        stats.end_time = datetime.now()
        events.sync_complete(stats)
        return stats

    def _refresh_libraries(self) -> LibraryRefreshCoordinator:
        if self.refresher is None:
            return LibraryRefreshCoordinator(self.destination)
        return self.refresher

    def _transfer_items(self, items: list[EnhancedItem], stats: SyncStats) -> set[str]:
        """Transfer every item's files and return the destination paths touched."""
        synced_files = set()

        for enhanced in items:
            for part in enhanced.item.parts:
                try:
                    local_path, dest_path = self.path_mapper.source_to_dest(part.file)
                except PathMappingError as e:
                    logger.warning(f"Cannot map {part.file} for {enhanced.title}: {e}")
                    stats.files_missing += 1
                    continue

                if not os.path.isfile(local_path):
                    logger.warning(f"Local file not found for {enhanced.title}: {local_path}")
                    stats.files_missing += 1
                    continue

                pairs = [(local_path, dest_path)]
                for companion in find_companion_files(local_path):
                    try:
                        pairs.append((companion, self.path_mapper.to_dest(companion)))
                    except PathMappingError as e:
                        logger.warning(f"Cannot map companion file {companion}: {e}")

                for local, dest in pairs:
                    if dest in synced_files:
                        continue
                    # Recorded before transferring so a failed copy is never treated as an orphan
                    synced_files.add(dest)
                    self._transfer_one(enhanced, local, dest, stats)

        return synced_files

    def _transfer_one(self, enhanced: EnhancedItem, local_path: str, dest_path: str, stats: SyncStats):
        try:
            result = self.transferrer.transfer_file(local_path, dest_path)
        except TransferError as e:
            stats.transfer_failures += 1
            failed = FailedItem(
                key=enhanced.rating_key,
                title=f"{enhanced.title} ({os.path.basename(local_path)})",
                error=str(e),
                attempts=self.transferrer.max_attempts,
            )
            stats.dead_letters.append(failed)
            events.dead_letter(failed)
            return

        if result.status == TransferStatus.COMPLETED:
            stats.files_transferred += 1
            stats.bytes_transferred += result.size
        else:
            stats.files_skipped += 1

    def _cleanup_orphans(self, synced_files: set[str], stats: SyncStats):
        """Delete destination files that this run did not produce."""
        dest_root = self.path_mapper.dest_root
        if not dest_root:
            logger.debug("No destination root configured, skipping orphan cleanup")
            return
        if not synced_files:
            logger.warning("No files were synced this run, skipping orphan cleanup")
            return

        try:
            remote_files = self.transferrer.list_files(dest_root)
        except TransferError as e:
            logger.warning(f"Failed to list destination files, skipping cleanup: {e}")
            return

        orphans = sorted(remote_files - synced_files)
        for path in orphans:
            try:
                self.transferrer.delete_file(path)
            except TransferError as e:
                logger.warning(f"Failed to delete orphaned file {path}: {e}")
                continue
            stats.orphans_deleted += 1
            logger.info(f"Deleted orphaned file: {path}")

    def _sync_metadata(self, matches, stats: SyncStats):
        for match in matches:
            source = match.source.item
            dest = match.destination.item

            try:
                if self.syncer.reconcile_watch_state(source, dest):
                    stats.watch_states_synced += 1
            except PlexApiError as e:
                stats.watch_state_errors += 1
                logger.error(f"Failed to sync watch state for {match.source.title}: {e}")

            if not dest.rating_key:
                logger.error(f"Destination match for {match.source.title} has no key")
                stats.metadata_errors += 1
                continue

            differences = self.differ.find_differences(source, dest)
            if not differences:
                stats.metadata_skipped += 1
                continue

            logger.debug(f"{match.source.title}: {'; '.join(differences)}")
            try:
                self.syncer.apply(source, dest, match.destination.library_id)
            except MetadataSyncError as e:
                logger.error(f"Metadata sync failed for {match.source.title}: {e}")
                stats.metadata_errors += 1
                continue
            stats.metadata_synced += 1

    def run_once(self) -> SyncStats:
        """Run a single cycle, letting run-level errors propagate."""
        logger.info("Running one-shot sync")
        return self.run_sync_cycle()

    def run_continuous(
        self,
        interval: float,
        should_stop: Callable[[], bool] = lambda: False,
        on_cycle: Optional[Callable[[Optional[SyncStats], Optional[Exception]], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        tick: float = 0.5,
    ):
        """Run a cycle immediately, then again every ``interval`` seconds.

        Cycles never overlap: the next one is scheduled only after the
        previous one returns. Errors are logged and the loop waits for the
        next tick.

        Args:
            interval: Seconds between cycle starts
            should_stop: Polled between cycles and while waiting
            on_cycle: Called with (stats, error) after every cycle
        """
        while not should_stop():
            started = clock()
            stats, error = None, None
            try:
                stats = self.run_sync_cycle()
            except Exception as e:
                error = e
                logger.error(f"Sync cycle failed: {e}")

            if on_cycle is not None:
                on_cycle(stats, error)

            while not should_stop() and clock() - started < interval:
                sleep(tick)
