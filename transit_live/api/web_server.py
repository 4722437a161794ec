"""
Relay HTTP query surface.
JSON endpoints over the feed cache; every route is served both at the root and under /api.
"""

import logging
from typing import Callable, Dict, List, Optional

from aiohttp import web

from ..core.config import ApplicationConfig
from ..core.resource_manager import ResourceManager
from ..errors import BadRequestError
from ..services.feed_poller import FeedPollerService
from ..services.query_service import FeedQueryService
from ..utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

CORS_SETTINGS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, OPTIONS',
    'Access-Control-Allow-Headers': '*',
    'Access-Control-Max-Age': '3600',
}

ROUTE_PREFIXES = ("", "/api")


def _json(data: dict, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, headers=CORS_SETTINGS)


def parse_coordinate(query, name: str, low: float, high: float) -> float:
    raw = query.get(name)
    if raw is None or raw.strip() == "":
        raise BadRequestError(f"Missing required parameter '{name}'")
    try:
        value = float(raw)
    except ValueError:
        raise BadRequestError(f"Parameter '{name}' must be a number, got {raw!r}")
    if value != value or not low <= value <= high:
        raise BadRequestError(f"Parameter '{name}' must be between {low} and {high}")
    return value


def parse_radius(query, default: float) -> float:
    raw = query.get("radius")
    if raw is None or raw.strip() == "":
        return default
    try:
        radius = float(raw)
    except ValueError:
        raise BadRequestError(f"Parameter 'radius' must be a number, got {raw!r}")
    if radius != radius or radius <= 0:
        raise BadRequestError("Parameter 'radius' must be a positive number of meters")
    return radius


def parse_route_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


@web.middleware
async def bad_request_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except BadRequestError as e:
        logger.debug(f"Rejected {request.path_qs}: {e.message}")
        return _json({"error": e.message}, status=400)


class WebServer:
    """aiohttp server exposing health, vehicle, nearby, alert and prediction queries"""

    def __init__(self, config: ApplicationConfig, poller: FeedPollerService,
                 query_service: FeedQueryService, resource_manager: Optional[ResourceManager] = None):
        self.config = config
        self.poller = poller
        self.query_service = query_service
        self.resource_manager = resource_manager

        self.app: Optional[web.Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

    def create_app(self) -> web.Application:
        """Create and configure the web application"""
        app = web.Application(middlewares=[bad_request_middleware])
        handlers: Dict[str, Callable] = {
            '/health': self._handle_health,
            '/vehicles': self._handle_vehicles,
            '/nearby': self._handle_nearby,
            '/alerts': self._handle_alerts,
            '/predictions': self._handle_predictions,
        }
        for prefix in ROUTE_PREFIXES:
            for path, handler in handlers.items():
                app.router.add_get(prefix + path, handler)
        app.router.add_route('OPTIONS', '/{tail:.*}', self._handle_options)
        return app

    async def _handle_health(self, request: web.Request) -> web.Response:
        """GET /health - per-feed entity count and last successful fetch"""
        body = {"status": "ok", "feeds": self.poller.health()}
        if self.resource_manager is not None:
            body["memoryMb"] = self.resource_manager.memory_usage_mb()
        return _json(body)

    async def _handle_vehicles(self, request: web.Request) -> web.Response:
        """GET /vehicles?route= - vehicle positions, optionally filtered by route"""
        route_id = request.query.get("route", "").strip()
        vehicles = self.query_service.vehicles_by_route(route_id)
        return _json({"vehicles": [v.to_dict() for v in vehicles], "count": len(vehicles)})

    async def _handle_nearby(self, request: web.Request) -> web.Response:
        """GET /nearby?lat&lon&radius - nearest vehicles plus the total within radius"""
        lat = parse_coordinate(request.query, "lat", -90.0, 90.0)
        lon = parse_coordinate(request.query, "lon", -180.0, 180.0)
        radius = parse_radius(request.query, self.config.nearby_default_radius_meters)
        if not is_valid_coordinate(lat, lon):
            raise BadRequestError("Invalid coordinate")

        within = self.query_service.all_vehicles_near(lat, lon, radius)
        nearest = within[:self.config.nearby_limit]
        nearby = []
        for vehicle, distance in nearest:
            item = vehicle.to_dict()
            item["distanceMeters"] = round(distance, 1)
            nearby.append(item)
        return _json({"nearby": nearby, "count": len(nearby), "total": len(within), "radius": radius})

    async def _handle_alerts(self, request: web.Request) -> web.Response:
        """GET /alerts?routes=a,b - alerts affecting any listed route, or all"""
        route_ids = parse_route_list(request.query.get("routes"))
        alerts = self.query_service.alerts_for_routes(route_ids)
        return _json({"alerts": [a.to_dict() for a in alerts], "count": len(alerts)})

    async def _handle_predictions(self, request: web.Request) -> web.Response:
        """GET /predictions?route= - trip-level stop predictions for one route"""
        route_id = request.query.get("route", "").strip()
        if not route_id:
            raise BadRequestError("Missing required parameter 'route'")
        updates = self.query_service.predictions_for_route(route_id)
        return _json({
            "routeId": route_id,
            "predictions": [u.to_dict() for u in updates],
            "count": len(updates),
        })

    async def _handle_options(self, request: web.Request) -> web.Response:
        """Handle OPTIONS preflight requests"""
        return web.Response(headers=CORS_SETTINGS)

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Start the web server"""
        host = host or self.config.host
        port = port or self.config.port
        logger.info(f"Starting web server on {host}:{port}")

        self.app = self.create_app()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, host, port)
        await self.site.start()

        logger.info(f"Relay server running on http://{host}:{port}")

    async def stop(self) -> None:
        """Stop the web server gracefully"""
        logger.info("Stopping web server...")
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        logger.info("Web server stopped")
