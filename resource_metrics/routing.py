"""
FastAPI integration: routes whose handlers run through feature interceptors.

Features are bound to a router's ``route_class`` and configured once per
route when the route is declared::

    app = FastAPI()
    register_features(app, MetricsFeature(registry))

    @app.get("/orders")
    @timed
    async def list_orders():
        ...
"""

from typing import Any, Callable, Optional, Sequence, Tuple, Type, Union

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.datastructures import FormData
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope

from .config import MetricsSettings, get_settings
from .feature import DynamicFeature, FeatureContext, MetricsFeature, ResourceInfo
from .interceptors import ReaderInterceptor, ReaderInterceptorContext, WriterInterceptorContext
from .logging import configure_logging, get_logger
from .registry import MetricRegistry

logger = get_logger("resource_metrics.routing")

METRICS_ROUTE_NAME = "resource_metrics_exposition"


class InterceptedRequest(Request):
    """Request whose body, JSON and form reads go through reader interceptors."""

    def __init__(self, scope: Scope, receive: Receive,
                 reader_interceptors: Sequence[ReaderInterceptor] = ()):
        super().__init__(scope, receive)
        self._reader_interceptors = reader_interceptors

    async def body(self) -> bytes:
        if not hasattr(self, "_intercepted_body"):
            context = ReaderInterceptorContext(self, self._reader_interceptors, super().body)
            self._intercepted_body = await context.proceed()
        return self._intercepted_body

    async def json(self) -> Any:
        if not hasattr(self, "_json"):
            context = ReaderInterceptorContext(self, self._reader_interceptors, super().json)
            self._json = await context.proceed()
        return self._json

    async def _get_form(self, **kwargs) -> FormData:
        parse_form = super()._get_form
        context = ReaderInterceptorContext(
            self,
            self._reader_interceptors,
            lambda: parse_form(**kwargs)
        )
        return await context.proceed()


class InstrumentedRoute(APIRoute):
    """APIRoute that lets dynamic features register interceptors."""

    features: Tuple[DynamicFeature, ...] = ()

    def get_route_handler(self) -> Callable:
        handler = super().get_route_handler()

        context = FeatureContext()
        resource_info = ResourceInfo.from_endpoint(self.endpoint, self.path, self.methods)
        for feature in self.features:
            feature.configure(resource_info, context)

        if context.empty:
            return handler

        async def intercepted_route_handler(request: Request) -> Response:
            request = InterceptedRequest(request.scope, request.receive, context.reader_interceptors)
            writer_context = WriterInterceptorContext(request, context.writer_interceptors, handler)
            return await writer_context.proceed()

        return intercepted_route_handler


def instrumented_route_class(*features: DynamicFeature) -> Type[InstrumentedRoute]:
    """Create a route class bound to ``features``."""
    return type("InstrumentedRoute", (InstrumentedRoute,), {"features": tuple(features)})


def _router(target: Union[FastAPI, APIRouter]) -> APIRouter:
    return target.router if isinstance(target, FastAPI) else target


def register_features(target: Union[FastAPI, APIRouter], *features: DynamicFeature) -> Type[InstrumentedRoute]:
    """Instrument every route declared on ``target`` from now on."""
    router = _router(target)
    existing = tuple(getattr(router.route_class, "features", ()))
    route_class = instrumented_route_class(*existing, *features)
    router.route_class = route_class

    for route in router.routes:
        if getattr(route, "name", None) == METRICS_ROUTE_NAME:
            continue
        if isinstance(route, APIRoute) and not isinstance(route, InstrumentedRoute):
            logger.warning(
                "Route declared before features were registered is not instrumented",
                path=route.path
            )
    return route_class


def add_metrics_route(target: Union[FastAPI, APIRouter], registry: MetricRegistry,
                      path: str = "/metrics") -> None:
    """Expose ``registry`` in Prometheus text format."""
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(
            content=registry.generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    _router(target).add_api_route(
        path,
        metrics_endpoint,
        methods=["GET"],
        name=METRICS_ROUTE_NAME,
        include_in_schema=False,
        route_class_override=APIRoute
    )


def instrument_app(app: FastAPI, registry: Union[MetricRegistry, str, None] = None,
                   settings: Optional[MetricsSettings] = None) -> MetricsFeature:
    """Register a ``MetricsFeature`` on ``app`` and expose its registry."""
    settings = settings or get_settings()
    configure_logging("resource_metrics", settings.log_level)
    feature = MetricsFeature(registry, settings=settings)
    register_features(app, feature)
    if settings.metrics_path:
        add_metrics_route(app, feature.registry, settings.metrics_path)
    return feature
