"""
Shared API Layer
================

Middleware, exception handlers and dependencies shared by all routers.
"""
