"""HTTP layer: routers, dependencies and error helpers."""
