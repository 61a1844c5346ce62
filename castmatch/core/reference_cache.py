"""Reference profile cache and its builder.

The builder turns remote reference folders into one centroid per folder:

1. Resolve folder names (explicit list, or discovery by name prefix).
2. List each folder's images and keep the first N.
3. Tag the folder's gender from its name.
4. Embed the images with a small worker pool, folding each vector into
   a running sum as soon as it arrives.
5. Divide by the success count; folders with no successes are dropped.
6. Publish the whole group set at once.

The cache is a state cell holding an immutable tuple of groups. A
rebuild swaps the tuple in one assignment, so readers always see a
complete snapshot, and only one rebuild may run at a time.
"""

import asyncio
import re
import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from tqdm import tqdm

from castmatch.domain.entities import GenderTag, ReferenceGroup
from castmatch.domain.interfaces import ReferenceStorage
from castmatch.utils.config import ReferenceConfig
from castmatch.utils.exceptions import CacheBuildInProgress, EmbeddingError, StorageError
from castmatch.utils.logger import get_logger, log_execution_time

from .embeddings import EmbeddingProvider
from .scoring import CentroidAccumulator

logger = get_logger(__name__)


class CacheState(str, Enum):
    """Lifecycle of the reference cache."""

    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"


class BuildReport(BaseModel):
    """Statistics container for one cache build."""

    groups_discovered: int = Field(default=0, ge=0, description="Folders selected for the build")
    groups_loaded: int = Field(default=0, ge=0, description="Folders that produced a centroid")
    dropped_groups: list[str] = Field(default_factory=list, description="Folders with no usable images")
    images_attempted: int = Field(default=0, ge=0, description="Images sent for embedding")
    images_embedded: int = Field(default=0, ge=0, description="Images folded into a centroid")
    images_failed: int = Field(default=0, ge=0, description="Images that could not be embedded")
    failed_urls: list[str] = Field(default_factory=list, description="URLs that could not be embedded")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Total build time")


def infer_gender(name: str) -> GenderTag:
    """Tag a folder by case-insensitive substring match on its name.

    "female" wins over the "male" it contains; a name mentioning both
    separately is ambiguous and tagged unknown.
    """
    lowered = name.lower()
    has_female = "female" in lowered
    has_male = "male" in lowered.replace("female", "")

    if has_female and has_male:
        return GenderTag.UNKNOWN
    if has_female:
        return GenderTag.FEMALE
    if has_male:
        return GenderTag.MALE
    return GenderTag.UNKNOWN


class ReferenceCacheBuilder:
    """Builds reference groups from storage through the embedding provider."""

    def __init__(
        self,
        storage: ReferenceStorage,
        provider: EmbeddingProvider,
        config: Optional[ReferenceConfig] = None,
        folder_prefix: str = "reference",
        show_progress: bool = True,
    ):
        """Initialize the builder.

        Args:
            storage: Reference folder storage
            provider: Embedding provider
            config: Reference build configuration
            folder_prefix: Reserved word discovered folder names start with
            show_progress: Display a per-folder tqdm progress bar
        """
        self.storage = storage
        self.provider = provider
        self.config = config or ReferenceConfig()
        self.folder_pattern = re.compile(rf"^{re.escape(folder_prefix)}\s", re.IGNORECASE)
        self.show_progress = show_progress

    async def discover_groups(self) -> list[str]:
        """Return the explicit folder list, or root folders matching the prefix.

        Raises:
            ConfigurationError: If storage credentials are missing
            StorageError: If the root listing fails
        """
        if self.config.folders is not None:
            logger.info(f"Using {len(self.config.folders)} configured reference folders")
            return list(self.config.folders)

        names = await self.storage.list_groups()
        selected = [n for n in names if self.folder_pattern.match(n)]
        logger.info(f"Discovered {len(selected)} reference folders out of {len(names)}")
        return selected

    async def _embed_all(
        self, label: str, urls: list[str], report: BuildReport
    ) -> CentroidAccumulator:
        """Embed URLs with a bounded worker pool, folding vectors as they arrive."""
        queue: asyncio.Queue[str] = asyncio.Queue()
        for url in urls:
            queue.put_nowait(url)

        accumulator = CentroidAccumulator()
        failed: list[str] = []
        progress = tqdm(
            total=len(urls), desc=label, unit="img", leave=False, disable=not self.show_progress
        )

        async def worker() -> None:
            while True:
                try:
                    url = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    vector = await self.provider.embed_url(url, memoize=False)
                    accumulator.add(vector)
                except (EmbeddingError, ValueError) as e:
                    failed.append(url)
                    logger.warning(f"embed_fail {label} {url}: {e}")
                finally:
                    progress.update(1)

        tasks = [asyncio.create_task(worker()) for _ in range(min(self.config.concurrency, len(urls)))]
        try:
            await asyncio.gather(*tasks)
        finally:
            # Siblings of a failed worker must not outlive the build
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            progress.close()

        report.images_attempted += len(urls)
        report.images_embedded += accumulator.count
        report.images_failed += len(failed)
        report.failed_urls.extend(failed)
        return accumulator

    async def build_group(self, label: str, report: BuildReport) -> Optional[ReferenceGroup]:
        """Build one group; None when the folder yields no usable images.

        Raises:
            ConfigurationError: If storage credentials are missing
        """
        try:
            all_urls = await self.storage.list_group_images(label)
        except StorageError as e:
            logger.warning(f"Skipping folder {label!r}: {e}")
            return None

        if not all_urls:
            logger.warning(f"Folder {label!r} has no images")
            return None

        urls = all_urls[: self.config.max_samples_per_group]
        gender = infer_gender(label)

        accumulator = await self._embed_all(label, urls, report)
        centroid = accumulator.centroid()
        if centroid is None:
            logger.warning(f"Folder {label!r}: 0 of {len(urls)} images embedded, dropping")
            return None

        logger.info(
            f"Folder {label!r} ({gender.value}): {accumulator.count}/{len(urls)} images embedded"
        )
        return ReferenceGroup(
            label=label,
            gender=gender,
            sample_count=accumulator.count,
            centroid=centroid,
        )

    async def build(self) -> tuple[list[ReferenceGroup], BuildReport]:
        """Build every reference group.

        Folders are processed one after another; only the images inside
        a folder are embedded concurrently.

        Returns:
            Built groups in folder order, and the build report

        Raises:
            ConfigurationError: If storage credentials are missing
            StorageError: If folder discovery fails
        """
        start_time = time.time()
        report = BuildReport()
        groups: list[ReferenceGroup] = []

        with log_execution_time(logger, "reference cache build"):
            labels = await self.discover_groups()
            report.groups_discovered = len(labels)

            for label in labels:
                group = await self.build_group(label, report)
                if group is None:
                    report.dropped_groups.append(label)
                else:
                    groups.append(group)

        report.groups_loaded = len(groups)
        report.duration_seconds = time.time() - start_time
        return groups, report


class ReferenceCache:
    """Process-wide holder of the current reference group snapshot."""

    def __init__(self) -> None:
        self._groups: tuple[ReferenceGroup, ...] = ()
        self._state = CacheState.EMPTY
        self._build_lock = asyncio.Lock()
        self.last_report: Optional[BuildReport] = None

    @property
    def groups(self) -> tuple[ReferenceGroup, ...]:
        """Current snapshot; never a partially built set."""
        return self._groups

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def is_building(self) -> bool:
        return self._build_lock.locked()

    def __len__(self) -> int:
        return len(self._groups)

    async def rebuild(self, builder: ReferenceCacheBuilder) -> BuildReport:
        """Run a build and swap in its result.

        A failed build leaves the previous snapshot and state in place.

        Args:
            builder: Builder producing the new group set

        Returns:
            Report of the build

        Raises:
            CacheBuildInProgress: If another rebuild is running
            ConfigurationError: If storage credentials are missing
            StorageError: If folder discovery fails
        """
        if self._build_lock.locked():
            raise CacheBuildInProgress()

        async with self._build_lock:
            previous_state = self._state
            self._state = CacheState.BUILDING
            try:
                groups, report = await builder.build()
            except BaseException:
                self._state = previous_state
                raise

            self._groups = tuple(groups)
            self._state = CacheState.READY
            self.last_report = report

        logger.info(
            "Loaded centroids: "
            + (", ".join(f"{g.label}({g.sample_count})" for g in self._groups) or "none")
        )
        return report
