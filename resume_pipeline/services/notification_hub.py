"""
Process-wide registry of open per-owner notification channels.

Accept paths add channels, disconnect handlers remove them and artifact
workers publish into them, all from different threads. Every mutation and
snapshot happens under one lock; writes to channels happen outside it on a
snapshot so a slow or dead channel never holds up the registry.

Delivery is best effort and at most once. There is no replay buffer: a
client that connects after a transition must read the status explicitly.
"""

import asyncio
import queue
import threading
import uuid
from typing import Dict, Optional, Set

from ..core.logger import logger
from ..schemas.events import NotificationEvent, connected_event


class ChannelClosedError(Exception):
    pass


class NotificationChannel:
    """One connected client (browser tab, stream consumer)"""

    def __init__(self, owner_id: str, max_queue_size: int = 100):
        self.channel_id = uuid.uuid4().hex
        self.owner_id = owner_id
        self._queue: "queue.Queue[NotificationEvent]" = queue.Queue(maxsize=max_queue_size)
        self._closed = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Let ``read_async`` on ``loop`` be woken by writes from any thread"""
        self._wakeup = asyncio.Event()
        self._loop = loop

    def write(self, event: NotificationEvent) -> None:
        if self.closed:
            raise ChannelClosedError(f"Channel {self.channel_id} is closed")
        try:
            self._queue.put_nowait(event)
        except queue.Full as e:
            raise ChannelClosedError(f"Channel {self.channel_id} is not draining") from e
        self._notify()

    def read(self, timeout: Optional[float] = None) -> Optional[NotificationEvent]:
        """Next event, or None when nothing arrived within ``timeout``"""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    async def read_async(self, timeout: float) -> Optional[NotificationEvent]:
        """
        Await the next event without holding a worker thread.

        Returns None when nothing arrived within ``timeout`` or the channel
        was closed. The channel must be attached to the running loop.
        """
        if self._wakeup is None:
            raise RuntimeError("Channel is not attached to an event loop")

        event = self._take()
        if event is not None or self.closed:
            return event
        self._wakeup.clear()
        # a write between the first take and clear() is caught here
        event = self._take()
        if event is not None:
            return event
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
        except asyncio.TimeoutError:
            return None
        return self._take()

    def drain(self):
        events = []
        while True:
            event = self._take()
            if event is None:
                return events
            events.append(event)

    def close(self) -> None:
        self._closed.set()
        self._notify()

    def _take(self) -> Optional[NotificationEvent]:
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def _notify(self) -> None:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None:
            return
        try:
            loop.call_soon_threadsafe(wakeup.set)
        except RuntimeError:
            # loop already closed, nobody is waiting on this channel
            logger.debug(f"Channel {self.channel_id} outlived its event loop")


class NotificationHub:
    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._channels: Dict[str, Set[NotificationChannel]] = {}
        self._lock = threading.Lock()
        self._running = False

    def init(self) -> "NotificationHub":
        with self._lock:
            self._running = True
        logger.info("Notification hub started")
        return self

    def shutdown(self) -> None:
        with self._lock:
            self._running = False
            channels = [c for owner_set in self._channels.values() for c in owner_set]
            self._channels.clear()
        for channel in channels:
            channel.close()
        logger.info(f"Notification hub stopped, closed {len(channels)} channel(s)")

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, owner_id: str) -> NotificationChannel:
        channel = NotificationChannel(owner_id, self.max_queue_size)
        with self._lock:
            if not self._running:
                raise RuntimeError("Notification hub is not running")
            self._channels.setdefault(owner_id, set()).add(channel)
            total = len(self._channels[owner_id])

        channel.write(connected_event())
        logger.info(f"Client connected for owner {owner_id} (total clients: {total})")
        return channel

    def unsubscribe(self, owner_id: str, channel: NotificationChannel) -> None:
        channel.close()
        with self._lock:
            owner_channels = self._channels.get(owner_id)
            if not owner_channels:
                return
            owner_channels.discard(channel)
            remaining = len(owner_channels)
            if not owner_channels:
                del self._channels[owner_id]
        logger.info(f"Client disconnected for owner {owner_id} (remaining clients: {remaining})")

    def publish(self, owner_id: str, event: NotificationEvent) -> int:
        """Write ``event`` to every open channel of ``owner_id``; returns deliveries"""
        with self._lock:
            snapshot = list(self._channels.get(owner_id, ()))

        if not snapshot:
            logger.debug(f"No clients connected for owner {owner_id}")
            return 0

        delivered = 0
        for channel in snapshot:
            try:
                channel.write(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Skipping channel for owner {owner_id}: {str(e)}")
                self.unsubscribe(owner_id, channel)
        return delivered

    def client_count(self, owner_id: str) -> int:
        with self._lock:
            return len(self._channels.get(owner_id, ()))

    def total_client_count(self) -> int:
        with self._lock:
            return sum(len(channels) for channels in self._channels.values())
