# transit_live/core/resource_manager.py
import asyncio
import os
from typing import Optional

import aiohttp
import psutil

from transit_live.core.config import detect_cpu_cores


class ResourceManager:
    """Centralized HTTP session pooling and process monitoring"""

    def __init__(self, request_timeout_seconds: float = 10.0, connection_limit: Optional[int] = None):
        self.cpu_cores = detect_cpu_cores()
        self.request_timeout_seconds = request_timeout_seconds
        self.connection_limit = connection_limit or max(10, self.cpu_cores * 10)
        self.connection_pool: Optional[aiohttp.ClientSession] = None
        self._http_lock = asyncio.Lock()

    async def get_http_session(self) -> aiohttp.ClientSession:
        """Get managed HTTP session with connection pooling"""
        async with self._http_lock:
            if self.connection_pool is None or self.connection_pool.closed:
                timeout = aiohttp.ClientTimeout(total=self.request_timeout_seconds)
                connector = aiohttp.TCPConnector(limit=self.connection_limit)
                self.connection_pool = aiohttp.ClientSession(timeout=timeout, connector=connector)
            return self.connection_pool

    async def close(self):
        async with self._http_lock:
            if self.connection_pool is not None and not self.connection_pool.closed:
                await self.connection_pool.close()
            self.connection_pool = None

    def memory_usage_mb(self) -> Optional[float]:
        """Resident memory of this process, or None if it cannot be read."""
        try:
            process = psutil.Process(os.getpid())
            return round(process.memory_info().rss / (1024 * 1024), 1)
        except (psutil.Error, OSError):
            return None
