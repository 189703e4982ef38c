"""
Proxy Package
=============

This package implements the single proxy endpoint that forwards validated
browser requests to the upstream form backend.

Main Components:
----------------
- routes.py: FastAPI router and the request pipeline (handle_request)
- cors.py: Origin allow-list check and CORS header construction

Security Features:
------------------
- Exact-match origin allow-list, origin reflected (never wildcard)
- Declared and streamed payload size limits
- JSON bodies validated before forwarding
- Upstream transport errors never leaked to the caller

Usage:
------
    from edge_proxy.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
