from __future__ import annotations

import logging

import redis
from dependency_injector import containers, providers

from ..core.domain.enums import CountingStrategy, StoreBackend
from ..core.ports.clock_port import SystemClock
from ..core.usecases.acquire_slot import AcquireSlotUseCase
from ..core.usecases.acquire_with_retry import AcquireWithRetryUseCase
from ..core.usecases.inspect_holders import InspectHoldersUseCase
from ..core.usecases.release_slot import ReleaseSlotUseCase
from ..infra.store_diskcache import DiskCacheCounterStore, DiskCacheEnumerationStore
from ..infra.store_redis import RedisCounterStore, RedisEnumerationStore
from ..config.settings import AppConfig

logger = logging.getLogger(__name__)


def _redis_store(redis_url, strategy, socket_timeout_seconds):
	logger.info(f"Connecting to Redis at {redis_url} (strategy: {strategy.value})")
	client = redis.Redis.from_url(
		redis_url,
		decode_responses=True,
		socket_timeout=socket_timeout_seconds,
		socket_connect_timeout=socket_timeout_seconds,
	)
	store_cls = RedisCounterStore if strategy is CountingStrategy.COUNTER else RedisEnumerationStore
	try:
		yield store_cls(client)
	finally:
		logger.debug("Closing Redis client")
		client.close()


def _diskcache_store(store_dir, strategy, socket_timeout_seconds):
	store_dir_str = str(store_dir) if store_dir else None
	logger.info(f"Opening holder store at: {store_dir_str or 'default user cache directory'} (strategy: {strategy.value})")
	store_cls = DiskCacheCounterStore if strategy is CountingStrategy.COUNTER else DiskCacheEnumerationStore
	with store_cls(base_dir=store_dir_str, timeout=socket_timeout_seconds) as store:
		logger.debug(f"Holder store ready at {store.directory}")
		yield store
	logger.debug("Holder store closed")


def store_resource(backend, strategy, redis_url, store_dir, socket_timeout_seconds):
	"""Build the holder store once per container; it is closed by shutdown_resources()."""
	backend = StoreBackend(backend)
	strategy = CountingStrategy(strategy)
	if backend is StoreBackend.DISKCACHE:
		yield from _diskcache_store(store_dir, strategy, socket_timeout_seconds)
	else:
		yield from _redis_store(redis_url, strategy, socket_timeout_seconds)


class Container(containers.DeclarativeContainer):
	config = providers.Configuration(pydantic_settings=[AppConfig()])

	store = providers.Resource(
		store_resource,
		backend=config.backend,
		strategy=config.strategy,
		redis_url=config.redis_url,
		store_dir=config.store_dir,
		socket_timeout_seconds=config.socket_timeout_seconds,
	)

	clock = providers.Singleton(SystemClock)

	acquire_uc = providers.Factory(AcquireSlotUseCase, store=store)
	release_uc = providers.Factory(ReleaseSlotUseCase, store=store)
	inspect_uc = providers.Factory(InspectHoldersUseCase, store=store)
	acquire_retry_uc = providers.Factory(AcquireWithRetryUseCase, acquire=acquire_uc, clock=clock)
