"""Rescan and refresh destination libraries, waiting for the server to settle."""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from ... import events
from ...api.plex import SCAN_ACTIVITY, PlexApi, PlexApiError
from ...models import Library
from ..core.exceptions import LibraryRefreshError

logger = logging.getLogger(__name__)

REFRESH_ACTIVITIES = frozenset({
    SCAN_ACTIVITY,
    "library.refresh.items",
    "library.update.item.metadata",
})


class RefreshState(Enum):
    """States of the library refresh coordinator."""
    IDLE = "idle"
    WAITING_FOR_EXISTING_SCANS = "waiting_for_existing_scans"
    SCANS_TRIGGERED = "scans_triggered"
    WAITING_FOR_SCAN_COMPLETION = "waiting_for_scan_completion"
    REFRESH_TRIGGERED = "refresh_triggered"
    WAITING_FOR_REFRESH_COMPLETION = "waiting_for_refresh_completion"
    DONE = "done"
    TIMED_OUT = "timed_out"


class LibraryRefreshCoordinator:
    """Drives a destination rescan and metadata refresh by polling activities.

    The clock and sleep functions are injectable so the waits can be
    simulated.
    """

    EXISTING_SCAN_POLL = 10
    EXISTING_SCAN_TIMEOUT = 5 * 60
    SCAN_POLL = 5
    SCAN_PROGRESS_INTERVAL = 30
    SCAN_TIMEOUT = 10 * 60
    REFRESH_POLL = 5
    REFRESH_TIMEOUT = 30 * 60

    def __init__(
        self,
        plex: PlexApi,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.plex = plex
        self._clock = clock
        self._sleep = sleep
        self.state = RefreshState.IDLE
        self.history = [RefreshState.IDLE]

    def _transition(self, state: RefreshState):
        logger.debug(f"Library refresh: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self) -> RefreshState:
        """Rescan every destination library, then refresh its metadata.

        Returns:
            The final state (DONE)

        Raises:
            LibraryRefreshError: If no library accepts a scan or refresh,
                or the scans do not finish in time
        """
        self._transition(RefreshState.WAITING_FOR_EXISTING_SCANS)
        self._wait_for_existing_scans()

        try:
            libraries = self.plex.list_libraries()
        except PlexApiError as e:
            raise LibraryRefreshError(f"Failed to list destination libraries: {e}")

        scanned = self._trigger_all(libraries, "scan")
        self._transition(RefreshState.SCANS_TRIGGERED)

        self._transition(RefreshState.WAITING_FOR_SCAN_COMPLETION)
        started = self._clock()
        if not self._wait_until_idle(
            {SCAN_ACTIVITY}, scanned, self.SCAN_TIMEOUT, self.SCAN_POLL, self.SCAN_PROGRESS_INTERVAL
        ):
            self._transition(RefreshState.TIMED_OUT)
            raise LibraryRefreshError(
                f"Library scans did not complete within {self.SCAN_TIMEOUT // 60} minutes"
            )
        events.library_scan_completed(self._clock() - started)

        refreshed = self._trigger_all(libraries, "refresh")
        self._transition(RefreshState.REFRESH_TRIGGERED)

        self._transition(RefreshState.WAITING_FOR_REFRESH_COMPLETION)
        if not self._wait_until_idle(
            REFRESH_ACTIVITIES, refreshed, self.REFRESH_TIMEOUT, self.REFRESH_POLL, self.SCAN_PROGRESS_INTERVAL
        ):
            logger.warning(
                f"Metadata refresh still running after {self.REFRESH_TIMEOUT // 60} minutes, continuing"
            )

        self._transition(RefreshState.DONE)
        return self.state

    def _wait_for_existing_scans(self):
        """Give scans already in flight a bounded chance to finish."""
        started = self._clock()
        while True:
            try:
                busy = self._busy({SCAN_ACTIVITY})
            except PlexApiError as e:
                logger.warning(f"Could not check for running scans, proceeding: {e}")
                return

            if not busy:
                return

            if self._clock() - started >= self.EXISTING_SCAN_TIMEOUT:
                logger.warning("Existing library scans still running after 5 minutes, proceeding")
                return

            logger.info(f"Waiting for {len(busy)} library scans already in progress")
            self._sleep(self.EXISTING_SCAN_POLL)

    def _trigger_all(self, libraries: list[Library], action: str) -> set[str]:
        """Trigger a scan or refresh on every library.

        Returns:
            IDs of libraries that accepted the request

        Raises:
            LibraryRefreshError: If no library accepted it
        """
        trigger = self.plex.trigger_scan if action == "scan" else self.plex.trigger_metadata_refresh
        accepted = set()

        for library in libraries:
            try:
                trigger(library.id)
            except PlexApiError as e:
                logger.error(f"Failed to trigger {action} for library {library.title}: {e}")
                continue
            accepted.add(library.id)
            if action == "scan":
                events.library_scan_triggered(library.id, library.title)
            else:
                logger.info(f"Metadata refresh triggered for library {library.title}")

        if not accepted:
            raise LibraryRefreshError(f"No destination library accepted a {action} request")
        return accepted

    def _wait_until_idle(
        self,
        activity_types: set[str],
        library_ids: set[str],
        timeout: float,
        interval: float,
        progress_interval: float,
    ) -> bool:
        """Poll until no matching activity runs. Returns False on timeout."""
        started = self._clock()
        last_progress = started

        while True:
            # Let the server register the activity before the first check
            self._sleep(interval)

            try:
                busy = self._busy(activity_types, library_ids)
            except PlexApiError as e:
                logger.warning(f"Failed to check library activity, still waiting: {e}")
                busy = None

            if busy == []:
                return True

            now = self._clock()
            if now - started >= timeout:
                return False

            if busy and now - last_progress >= progress_interval:
                for activity in busy:
                    logger.info(f"Still running: {activity.title or activity.type} ({activity.progress}%)")
                last_progress = now

    def _busy(self, activity_types: set[str], library_ids: Optional[set[str]] = None) -> list:
        busy = []
        for activity in self.plex.list_activities():
            if activity.type not in activity_types:
                continue
            if library_ids and activity.library_section_id and activity.library_section_id not in library_ids:
                continue
            busy.append(activity)
        return busy
