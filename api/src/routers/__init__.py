"""API route groups.

Each domain route group lives in its own module exposing a `router`
(fastapi.APIRouter). ROUTE_GROUPS lists them with the URL prefix they are
mounted under; mount_route_groups() includes them into the application in
that order. The groups own their endpoints entirely: requests reach them
unmodified once the middleware chain has run.
"""

import importlib
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import structlog
from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

logger = structlog.get_logger(__name__)


class RouteModuleError(RuntimeError):
    """A route group module does not expose a usable router."""


@dataclass(frozen=True)
class RouteGroup:
    """A domain route group mounted under the API prefix."""

    name: str
    prefix: str
    module: str
    tag: str


ROUTE_GROUPS: Tuple[RouteGroup, ...] = (
    RouteGroup("auth", "/auth", "api.src.routers.auth", "Authentication"),
    RouteGroup("restaurants", "/restaurants", "api.src.routers.restaurants", "Restaurants"),
    RouteGroup("menu", "/menu", "api.src.routers.menu", "Menu"),
    RouteGroup("orders", "/orders", "api.src.routers.orders", "Orders"),
    RouteGroup("cart", "/cart", "api.src.routers.cart", "Cart"),
    RouteGroup("admin", "/admin", "api.src.routers.admin", "Administration"),
    RouteGroup("contact", "/contact", "api.src.routers.contact", "Contact"),
)


def load_router(group: RouteGroup) -> APIRouter:
    """
    Import a route group module and return its router.

    Raises:
        RouteModuleError: If the module has no APIRouter named `router`
    """
    module = importlib.import_module(group.module)
    router = getattr(module, "router", None)
    if not isinstance(router, APIRouter):
        raise RouteModuleError(f"{group.module} does not define an APIRouter named 'router'")
    return router


def mount_route_groups(
    app: FastAPI,
    api_prefix: str,
    overrides: Optional[Mapping[str, APIRouter]] = None,
    templates: Optional[Dict[Callable, str]] = None,
) -> List[str]:
    """
    Mount every route group under the API prefix.

    Args:
        app: Application to mount into
        api_prefix: Prefix shared by all groups (e.g. /api)
        overrides: Routers to use instead of the module ones, keyed by group name
        templates: Filled with the full path template of every group endpoint

    Returns:
        Mounted prefixes, in mount order
    """
    overrides = overrides or {}
    unknown = set(overrides) - {group.name for group in ROUTE_GROUPS}
    if unknown:
        raise RouteModuleError(f"Unknown route groups: {sorted(unknown)}")

    mounted = []
    for group in ROUTE_GROUPS:
        router = overrides.get(group.name) or load_router(group)
        prefix = f"{api_prefix}{group.prefix}"
        app.include_router(router, prefix=prefix, tags=[group.tag])
        mounted.append(prefix)
        if templates is not None:
            templates.update(route_templates(router, prefix))
        logger.debug("route_group_mounted", group=group.name, prefix=prefix, routes=len(router.routes))

    return mounted


def route_templates(router: APIRouter, prefix: str) -> Dict[Callable, str]:
    """
    Map each endpoint of a router to its full path template.

    Keys are endpoint callables, which stay the same however the framework
    lays out included routes; values are the templates as mounted under
    `prefix` (e.g. /api/orders/{order_id}).
    """
    return {
        route.endpoint: f"{prefix}{route.path}"
        for route in router.routes
        if isinstance(route, APIRoute)
    }
