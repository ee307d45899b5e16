"""Marketplace API gateway: one client, one envelope. Services above this never see httpx."""
from taskhub.services.api.client import ApiClient
from taskhub.services.api.config import ApiConfig
from taskhub.services.api.types import ApiResponse

__all__ = [
    "ApiClient",
    "ApiConfig",
    "ApiResponse",
]
