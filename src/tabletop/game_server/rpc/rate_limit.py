"""Per-viewer rate limiting with request queueing."""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import yaml

logger = logging.getLogger("tabletop.rate_limit")

T = TypeVar("T")


@dataclass
class RateLimitConfig:
    """Rate limit configuration for an endpoint."""

    limit: float  # requests per window
    window: float  # window in seconds
    queue_timeout: float = 30.0  # max time request can wait

    @property
    def delay_per_request(self) -> float:
        """Minimum spacing between requests that keeps within the limit."""
        return self.window / self.limit if self.limit > 0 else 0.0


@dataclass
class QueuedRequest:
    """A request waiting in a viewer's queue."""

    handler: Callable[[], Awaitable[Any]]
    config: RateLimitConfig
    enqueued_at: float
    future: asyncio.Future


class RateLimiter:
    """Per-viewer rate limiter with queueing support.

    Requests from one viewer run one at a time, spaced by the endpoint's
    configured delay. Requests waiting longer than their ``queue_timeout``
    fail with TimeoutError.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize rate limiter.

        Args:
            config_path: Path to rate_limits.yaml. If None or missing, the
                built-in default applies to every endpoint.
        """
        self._config: Dict[str, Any] = {}
        self._default_config = RateLimitConfig(limit=10.0, window=1.0)

        if config_path and config_path.exists():
            self._load_config(config_path)
        else:
            logger.warning(
                "Rate limit config not found at %s, using defaults", config_path
            )

        self._queues: Dict[str, asyncio.Queue] = {}
        self._last_request: Dict[str, float] = {}
        self._processors: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    def _load_config(self, config_path: Path) -> None:
        try:
            with open(config_path, "r") as f:
                self._config = yaml.safe_load(f) or {}
            logger.info("Loaded rate limit config from %s", config_path)
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Failed to load rate limit config: %s", exc)
            self._config = {}

    def get_limit(self, endpoint: str) -> RateLimitConfig:
        """Return the config for ``endpoint``, falling back to ``default``."""
        endpoint_cfg = self._config.get(endpoint)
        if isinstance(endpoint_cfg, dict) and "limit" in endpoint_cfg:
            return RateLimitConfig(**endpoint_cfg)

        default_cfg = self._config.get("default")
        if isinstance(default_cfg, dict) and "limit" in default_cfg:
            return RateLimitConfig(**default_cfg)

        return self._default_config

    async def _get_queue(self, viewer: str) -> asyncio.Queue:
        async with self._lock:
            if viewer not in self._queues:
                self._queues[viewer] = asyncio.Queue()
                self._processors[viewer] = asyncio.create_task(
                    self._process_queue(viewer)
                )
            return self._queues[viewer]

    async def _process_queue(self, viewer: str) -> None:
        """Run a viewer's queued requests in order at the configured pace."""
        logger.debug("Started queue processor for %s", viewer)
        queue = self._queues[viewer]

        try:
            while True:
                request: QueuedRequest = await queue.get()

                try:
                    wait_time = time.time() - request.enqueued_at
                    if wait_time > request.config.queue_timeout:
                        logger.warning(
                            "Request for %s timed out after %.2fs", viewer, wait_time
                        )
                        request.future.set_exception(
                            TimeoutError(
                                f"Request timed out after {wait_time:.2f}s in queue"
                            )
                        )
                        continue

                    last = self._last_request.get(viewer)
                    if last is not None:
                        min_delay = request.config.delay_per_request
                        elapsed = time.time() - last
                        if elapsed < min_delay:
                            delay = min_delay - elapsed
                            logger.debug("Rate limiting %s: waiting %.3fs", viewer, delay)
                            await asyncio.sleep(delay)

                    result = await request.handler()
                    self._last_request[viewer] = time.time()
                    if not request.future.done():
                        request.future.set_result(result)

                except Exception as exc:
                    self._last_request[viewer] = time.time()
                    if not request.future.done():
                        request.future.set_exception(exc)

                finally:
                    queue.task_done()

        except asyncio.CancelledError:
            logger.debug("Queue processor cancelled for %s", viewer)
            raise

    async def enqueue_request(
        self,
        endpoint: str,
        viewer: str,
        handler: Callable[[], Awaitable[T]],
    ) -> T:
        """Queue ``handler`` behind the viewer's earlier requests and await it.

        Raises:
            TimeoutError: If the request waits longer than queue_timeout
        """
        config = self.get_limit(endpoint)
        logger.debug(
            "Rate limit for %s: %.2f req/%.2fs", endpoint, config.limit, config.window
        )

        queue = await self._get_queue(viewer)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        await queue.put(
            QueuedRequest(
                handler=handler,
                config=config,
                enqueued_at=time.time(),
                future=future,
            )
        )
        logger.debug("Enqueued request for %s (queue size: %d)", viewer, queue.qsize())
        return await future

    async def shutdown(self) -> None:
        """Cancel all queue processors and forget per-viewer state."""
        logger.info("Shutting down rate limiter")
        async with self._lock:
            for processor in self._processors.values():
                processor.cancel()
            self._processors.clear()
            self._queues.clear()
            self._last_request.clear()
