from .config import (
    CollateralRoute,
    NetworkConfig,
    SwapRouterConfig,
    TokenConfig,
    UnderlyingConfig,
    load_config,
    load_network_config,
    with_token_overrides,
)
from .logging_utils import setup_logging

__all__ = [
    "CollateralRoute",
    "NetworkConfig",
    "SwapRouterConfig",
    "TokenConfig",
    "UnderlyingConfig",
    "load_config",
    "load_network_config",
    "setup_logging",
    "with_token_overrides",
]
