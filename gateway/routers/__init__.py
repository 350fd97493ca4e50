"""
FastAPI routers.

`accounts` exposes the table backend under /api so the HTTP adapter has a
concrete REST counterpart.
"""
