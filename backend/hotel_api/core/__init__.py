"""
Application wiring: lifespan, exception handlers, dependencies.
"""

from .lifespan import lifespan, release_services, wire_services
from .errors import register_exception_handlers

__all__ = [
    "lifespan",
    "release_services",
    "wire_services",
    "register_exception_handlers",
]
