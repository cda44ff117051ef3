from .routes_data import register_data_routes
from .routes_email import register_email_routes
from .routes_hooks import register_request_hooks
from .routes_netlify import register_netlify_routes
from .routes_openapi import register_openapi_routes
from .routes_proxy import register_proxy_routes

# The proxy owns "/" and goes last; the other groups own fixed paths.
ROUTE_GROUPS = (
    register_email_routes,
    register_data_routes,
    register_openapi_routes,
    register_netlify_routes,
    register_proxy_routes,
)


def register_routes(app, settings):
    register_request_hooks(app)
    for register in ROUTE_GROUPS:
        register(app, settings)
