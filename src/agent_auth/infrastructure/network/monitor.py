"""Network status monitoring.

The host pushes connectivity changes into ``NetworkStatusMonitor``; the
providers and recovery strategies only read it through the ``NetworkMonitor``
protocol.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

NetworkListener = Callable[[bool, "NetworkQuality"], None]


class NetworkQuality(str, Enum):
    """Coarse link quality"""
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"
    OFFLINE = "offline"


class NetworkMonitor(Protocol):
    """Connectivity signal consumed by providers and recovery"""

    def is_online(self) -> bool: ...

    def get_quality(self) -> NetworkQuality: ...

    async def wait_for_connection(self, timeout: float) -> bool: ...

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]: ...


class NetworkStatusMonitor:
    """In-process connectivity state.

    Example:
        monitor = NetworkStatusMonitor()
        unsubscribe = monitor.subscribe(lambda online, quality: ...)
        monitor.set_status(False)
        await monitor.wait_for_connection(timeout=15)
    """

    def __init__(self, online: bool = True, quality: Optional[NetworkQuality] = None):
        self._online = online
        self._quality = quality or (NetworkQuality.GOOD if online else NetworkQuality.OFFLINE)
        self._listeners: List[NetworkListener] = []
        self._connected = asyncio.Event()
        if online:
            self._connected.set()

    def is_online(self) -> bool:
        return self._online

    def get_quality(self) -> NetworkQuality:
        return self._quality

    def set_status(self, online: bool, quality: Optional[NetworkQuality] = None) -> None:
        """Record a connectivity change and notify listeners."""
        changed = online != self._online
        self._online = online
        self._quality = quality or (NetworkQuality.GOOD if online else NetworkQuality.OFFLINE)

        if online:
            self._connected.set()
        else:
            self._connected.clear()

        if changed:
            logger.info(f"Network status changed: online={online} quality={self._quality.value}")

        for listener in list(self._listeners):
            try:
                listener(self._online, self._quality)
            except Exception as e:
                logger.error(f"Network listener failed: {e}")

    async def wait_for_connection(self, timeout: float) -> bool:
        """Wait until online, at most ``timeout`` seconds.

        Returns:
            True if connectivity is available when the wait ends
        """
        if self._online:
            return True
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return self._online

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register a status listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
