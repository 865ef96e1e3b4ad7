"""API Layer — FastAPI routers, middleware, and error handlers."""
