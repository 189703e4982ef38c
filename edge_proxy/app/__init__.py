"""
Edge Proxy Application
======================

FastAPI service that enforces the origin allow-list and payload limits in
front of the upstream form backend, relaying its responses with CORS
headers attached.

Modules:
- config: Pydantic settings (upstream URL, allowed origins, limits)
- models: Error envelope and health models
- proxy: The proxy router, request pipeline and CORS helpers
- main: Application factory, lifespan and logging setup
"""

__version__ = "1.0.0"
