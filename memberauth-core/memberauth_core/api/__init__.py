"""
HTTP API
========
FastAPI surface over the OTP flow and the profile service.
"""

from .app import create_app
from .dependencies import Services, get_services, current_member

__all__ = [
    "create_app",
    "Services",
    "get_services",
    "current_member",
]
