"""
Service wiring for the HTTP layer.

One ServiceContainer is created per application and shared by every
request: the embedding provider (and its memo), the reference cache and
the evaluator all live for the lifetime of the process.
"""

from dataclasses import dataclass
from typing import Optional

import aiohttp

from castmatch.core import (
    EmbeddingProvider,
    Evaluator,
    ReferenceCache,
    ReferenceCacheBuilder,
    RuleScorer,
    SimilarityMatcher,
    create_provider,
)
from castmatch.domain.interfaces import ReferenceStorage
from castmatch.infrastructure.storage import CloudinaryStorage
from castmatch.utils.config import AppConfig
from castmatch.utils.exceptions import CacheBuildInProgress
from castmatch.utils.logger import get_logger, log_exception

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived collaborators shared across requests."""

    config: AppConfig
    provider: EmbeddingProvider
    cache: ReferenceCache
    builder: ReferenceCacheBuilder
    evaluator: Evaluator
    session: Optional[aiohttp.ClientSession] = None

    async def reload_references(self):
        """Rebuild the reference cache; see ReferenceCache.rebuild."""
        return await self.cache.rebuild(self.builder)


def assemble_services(
    config: AppConfig,
    provider: EmbeddingProvider,
    storage: ReferenceStorage,
    session: Optional[aiohttp.ClientSession] = None,
    show_progress: bool = True,
) -> ServiceContainer:
    """Wire the evaluator and cache around a provider and a storage."""
    cache = ReferenceCache()
    builder = ReferenceCacheBuilder(
        storage=storage,
        provider=provider,
        config=config.references,
        folder_prefix=config.storage.folder_prefix,
        show_progress=show_progress,
    )
    matcher = SimilarityMatcher(provider, max_photos=config.matcher.max_photos)
    evaluator = Evaluator(RuleScorer(), matcher, cache)
    return ServiceContainer(
        config=config,
        provider=provider,
        cache=cache,
        builder=builder,
        evaluator=evaluator,
        session=session,
    )


def build_services(config: AppConfig, session: aiohttp.ClientSession) -> ServiceContainer:
    """Create production services backed by Cloudinary and hosted inference."""
    provider = create_provider(config.embedding, session)
    storage = CloudinaryStorage(config.storage, session)
    return assemble_services(config, provider, storage, session=session)


async def initial_build(services: ServiceContainer) -> None:
    """Startup cache build; failures are logged and the cache stays empty."""
    try:
        await services.reload_references()
    except CacheBuildInProgress:
        logger.info("Startup build skipped, a rebuild is already running")
    except Exception as e:
        log_exception(logger, "startup reference build", e)
