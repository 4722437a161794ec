# transit_live/core/application.py
import inspect
import logging
from typing import Dict, List, Optional

from transit_live.core.event_loop import ManagedEventLoop
from transit_live.core.resource_manager import ResourceManager

logger = logging.getLogger(__name__)


async def _call_lifecycle(service, method_name: str) -> bool:
    method = getattr(service, method_name, None)
    if method is None:
        return False
    result = method()
    if inspect.isawaitable(result):
        await result
    return True


class Application:
    """Owns the relay's services and shared resources for the lifetime of the process"""

    def __init__(self, resource_manager: Optional[ResourceManager] = None):
        self.event_loop = ManagedEventLoop()
        self.resource_manager = resource_manager or ResourceManager()
        self.services: Dict[str, object] = {}
        self._started: List[str] = []

    def register_service(self, name: str, service):
        if name in self.services:
            raise ValueError(f"Service {name} is already registered")
        self.services[name] = service

    def get_service(self, name: str):
        return self.services.get(name)

    async def start(self):
        """Start services in registration order; a failing start stops the ones already running."""
        await self.event_loop.start()
        for name, service in self.services.items():
            try:
                await _call_lifecycle(service, 'start')
            except Exception as e:
                logger.error(f"Service {name} failed to start: {e}")
                await self.stop()
                raise
            self._started.append(name)
            logger.info(f"Service {name} started")

    async def stop(self):
        """Stop started services in reverse order, then release shared resources"""
        for name in reversed(self._started):
            try:
                await _call_lifecycle(self.services[name], 'stop')
                logger.info(f"Service {name} stopped")
            except Exception as e:
                logger.error(f"Error stopping service {name}: {e}")
        self._started.clear()
        await self.event_loop.stop()
        await self.resource_manager.close()

    @property
    def running_services(self) -> List[str]:
        return list(self._started)
