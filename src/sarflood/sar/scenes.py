"""Post-event scene search and pre-event baseline composite.

The search walks the (window, orbit) matrix in a fixed order: windows
ascending in the outer loop, orbit passes in configured order in the
inner loop. The first pair with at least one scene wins and no later pair
is queried. A query that fails is recorded and the search moves on; that
is the only retry-like behavior in the pipeline.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from sarflood.backend.base import BackendError, GeospatialBackend, SceneQuery
from sarflood.contracts import assert_scene_selected
from sarflood.errors import NoBaselineImages, NoSceneFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchAttempt:
    """One (window, orbit) query of the after-scene search."""
    window_days: int
    orbit_pass: str
    scene_count: int
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.scene_count > 0


@dataclass(frozen=True)
class SceneSelection:
    """Winning after-scene search result."""
    after_image: Any
    after_count: int
    window_days: int
    orbit_pass: str
    after_start: datetime
    end_date: datetime
    acquired_utc: Optional[datetime]
    attempts: Tuple[SearchAttempt, ...]


@dataclass(frozen=True)
class Baseline:
    """Median composite of pre-event scenes on the selected orbit."""
    image: Any
    count: int
    start: datetime
    end: datetime
    orbit_pass: str


def search_plan(windows: Sequence[int], orbits: Sequence[str]) -> Iterator[Tuple[int, str]]:
    """(window, orbit) pairs in search order."""
    return itertools.product(sorted(windows), orbits)


def parse_end_date(end_date: Optional[str], now: Optional[Callable[[], datetime]] = None) -> datetime:
    """Resolve the configured end date to an aware UTC datetime.

    ``None`` means the current time. A bare date (``2021-12-20``) means
    midnight UTC of that day; naive timestamps are taken as UTC.
    """
    if end_date is None:
        return (now or (lambda: datetime.now(timezone.utc)))().astimezone(timezone.utc)

    parsed = datetime.fromisoformat(end_date.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class SceneSelector:
    """Find the after image and build the before composite.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``scenes`` section.
    backend : GeospatialBackend
        Connected backend.
    clock : callable, optional
        Returns "now" as an aware datetime; used when no end date is
        configured.
    """

    def __init__(self, config, backend: GeospatialBackend,
                 clock: Optional[Callable[[], datetime]] = None):
        self.scene_cfg = config.scenes
        self.backend = backend
        self.clock = clock
        self.local_tz = ZoneInfo(self.scene_cfg.local_timezone)
        self.last_attempts = []

    def end_date(self) -> datetime:
        return parse_end_date(self.scene_cfg.end_date, self.clock)

    def _query(self, start: datetime, end: datetime, orbit_pass: str) -> SceneQuery:
        cfg = self.scene_cfg
        return SceneQuery(
            collection=cfg.collection,
            start=start,
            end=end,
            orbit_pass=orbit_pass,
            instrument_mode=cfg.instrument_mode,
            polarization=cfg.polarization,
            resolution_m=cfg.resolution_m,
        )

    def select_after(self, aoi, end_date: Optional[datetime] = None) -> SceneSelection:
        """Search the window/orbit matrix for the post-event scene.

        Raises
        ------
        NoSceneFound
            If every (window, orbit) pair is empty or failed.
        """
        cfg = self.scene_cfg
        end = end_date or self.end_date()
        attempts = self.last_attempts = []

        for window_days, orbit_pass in search_plan(cfg.after_windows, cfg.orbits):
            start = end - timedelta(days=window_days)
            query = self._query(start, end, orbit_pass)
            logger.info("Searching: last %d days (%s)", window_days, orbit_pass)

            try:
                collection = self.backend.scene_collection(query, aoi.geometry)
                count = self.backend.collection_size(collection)
                after_image = self.backend.latest_image(collection) if count > 0 else None
            except BackendError as e:
                logger.warning("Query failed for %d days (%s): %s", window_days, orbit_pass, e)
                attempts.append(SearchAttempt(window_days, orbit_pass, 0, str(e)))
                continue

            attempts.append(SearchAttempt(window_days, orbit_pass, count))
            if count < 1:
                logger.info("  no scenes")
                continue

            logger.info("  found %d scenes", count)
            selection = SceneSelection(
                after_image=after_image,
                after_count=count,
                window_days=window_days,
                orbit_pass=orbit_pass,
                after_start=start,
                end_date=end,
                acquired_utc=self._acquired(after_image),
                attempts=tuple(attempts),
            )
            assert_scene_selected(selection, cfg.after_windows, cfg.orbits)
            return selection

        raise NoSceneFound(
            f"No scenes for any window/orbit (windows {list(cfg.after_windows)} days, "
            f"orbits {list(cfg.orbits)}, ending {end:%Y-%m-%d %H:%M} UTC)",
            attempts=attempts,
        )

    def _acquired(self, image) -> Optional[datetime]:
        """Acquisition time of the after image; reporting only, never fatal."""
        try:
            acquired = self.backend.acquisition_time(image)
        except BackendError as e:
            logger.warning("Could not read acquisition time: %s", e)
            return None
        if acquired is not None:
            logger.info("Latest acquisition: %s UTC | %s",
                        acquired.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                        self.format_local(acquired))
        return acquired

    def format_local(self, moment: datetime) -> str:
        local = moment.astimezone(self.local_tz)
        return f"{local:%Y-%m-%d %H:%M:%S} {self.scene_cfg.local_timezone} (UTC{local:%z})"

    def build_baseline(self, aoi, selection: SceneSelection) -> Baseline:
        """Median of pre-event scenes ending ``before_gap_days`` before the after window.

        Raises
        ------
        NoBaselineImages
            If no scene falls in the baseline window on the selected orbit.
        BackendError
            If the baseline query fails.
        """
        cfg = self.scene_cfg
        end = selection.after_start - timedelta(days=cfg.before_gap_days)
        start = end - timedelta(days=cfg.before_days)
        query = self._query(start, end, selection.orbit_pass)

        try:
            collection = self.backend.scene_collection(query, aoi.geometry)
            count = self.backend.collection_size(collection)
        except BackendError as e:
            logger.error("Baseline query failed (%s): %s", query.describe(), e)
            raise

        if count < 1:
            raise NoBaselineImages(
                f"No baseline images between {start:%Y-%m-%d} and {end:%Y-%m-%d} "
                f"({selection.orbit_pass}). Try a longer before_days (e.g. {cfg.before_days * 2})."
            )

        logger.info("Baseline: %d scenes %s to %s (%s)", count,
                    f"{start:%Y-%m-%d}", f"{end:%Y-%m-%d}", selection.orbit_pass)
        return Baseline(
            image=self.backend.median(collection),
            count=count,
            start=start,
            end=end,
            orbit_pass=selection.orbit_pass,
        )
