import asyncio
from abc import ABC, abstractmethod
from typing import Optional, TypeVar, Generic, List
from uuid import uuid4

from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


T = TypeVar("T")


class BaseWorker(ABC, Generic[T]):
    """
    Base worker class for in-process queue processing.

    Messages are submitted to a bounded asyncio.Queue and handled by
    `max_concurrent_messages` consumer tasks. A failure while handling one
    message is logged and never stops the consumer.
    """

    def __init__(
        self,
        queue_name: str,
        worker_id: Optional[str] = None,
        max_concurrent_messages: int = 1,
        max_queue_size: int = 0,
    ):
        self.queue_name = queue_name
        self.worker_id = worker_id or f"{queue_name}_worker_{uuid4()}"
        self.running = False
        self.max_concurrent_messages = max_concurrent_messages
        self.max_queue_size = max_queue_size
        self.queue: Optional[asyncio.Queue] = None
        self._consumers: List[asyncio.Task] = []

    async def setup(self):
        """Initialize worker dependencies."""
        self.queue = asyncio.Queue(maxsize=self.max_queue_size)
        logger.info(f"Worker {self.worker_id} setup completed")

    async def cleanup(self):
        """Cleanup worker resources."""
        self.queue = None
        logger.info(f"Worker {self.worker_id} cleanup completed")

    async def start(self):
        """Start consumer tasks. Returns once they are running."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        await self.setup()
        self.running = True
        self._consumers = [
            asyncio.create_task(self._consume(index))
            for index in range(self.max_concurrent_messages)
        ]
        logger.info(
            f"Started worker {self.worker_id} on queue {self.queue_name} "
            f"with {self.max_concurrent_messages} consumers"
        )

    def submit(self, message: T) -> bool:
        """
        Enqueue a message without waiting.

        Returns:
            False if the worker is not running or the queue is full
        """
        if not self.running or self.queue is None:
            logger.error(f"Worker {self.worker_id} is not running, message rejected")
            return False
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.error(
                f"Worker {self.worker_id} queue is full, message rejected",
                extra={"queue_size": self.queue.qsize()},
            )
            return False
        return True

    async def drain(self):
        """Wait until every submitted message has been handled."""
        if self.queue is not None:
            await self.queue.join()

    async def stop(self):
        """Finish queued messages, then stop the consumers."""
        if not self.running:
            return
        logger.info(f"Stopping worker {self.worker_id}")
        await self.drain()
        self.running = False
        for consumer in self._consumers:
            consumer.cancel()
        await asyncio.gather(*self._consumers, return_exceptions=True)
        self._consumers = []
        await self.cleanup()

    async def _consume(self, index: int):
        while True:
            message = await self.queue.get()
            try:
                await self._message_handler(message)
            except Exception:
                # Already logged by _message_handler; keep consuming
                pass
            finally:
                self.queue.task_done()

    async def _message_handler(self, message: T):
        """Internal message handler that wraps the abstract process_message method."""
        logger.debug(f"Worker {self.worker_id} received message: {message}")

        try:
            await self.process_message(message)
            logger.debug(f"Worker {self.worker_id} successfully processed message")
        except Exception as e:
            logger.error(
                f"Error processing message in worker {self.worker_id}: {e}",
                exc_info=True,
            )
            raise

    @abstractmethod
    async def process_message(self, message: T):
        """Process a message from the queue. Must be implemented by subclasses."""
        pass
