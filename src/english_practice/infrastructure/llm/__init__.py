"""LLM infrastructure package."""

from english_practice.infrastructure.llm.clients import DashScopeClient, ExerciseProxyClient
from english_practice.infrastructure.llm.config import (
    ExerciseClientConfig,
    ServerConfig,
    VendorConfig,
    default_client_config,
    default_server_config,
    default_vendor_config,
)

__all__ = [
    "DashScopeClient",
    "ExerciseClientConfig",
    "ExerciseProxyClient",
    "ServerConfig",
    "VendorConfig",
    "default_client_config",
    "default_server_config",
    "default_vendor_config",
]
