"""HTTP boundary for CastMatch."""

from .app import create_app
from .services import ServiceContainer, assemble_services, build_services

__all__ = ["ServiceContainer", "assemble_services", "build_services", "create_app"]
