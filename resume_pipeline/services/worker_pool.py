from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from ..core.logger import logger


class ArtifactWorkerPool:
    """Bounded thread pool that runs artifact jobs off the request path"""

    def __init__(self, max_workers: int = 4, name: str = "artifact-worker"):
        self.max_workers = max_workers
        self.name = name
        self._executor: Optional[ThreadPoolExecutor] = None

    def start(self) -> "ArtifactWorkerPool":
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix=self.name
            )
            logger.info(f"Started {self.name} pool with {self.max_workers} workers")
        return self

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Queue ``fn``; returns False instead of raising when the pool is down"""
        if self._executor is None:
            logger.warning(f"{self.name} pool is not running, job {fn.__name__}{args} dropped")
            return False
        try:
            self._executor.submit(fn, *args)
            return True
        except RuntimeError as e:
            logger.warning(f"{self.name} pool rejected job {fn.__name__}{args}: {str(e)}")
            return False

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
            logger.info(f"Stopped {self.name} pool")
