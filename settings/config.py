"""Network configuration: contract addresses, token metadata and swap routers."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Dict, FrozenSet, Optional

import yaml
from pydantic import BaseModel

from position_core.errors import UnsupportedCombinationError
from position_core.tokens import Token, is_interest_rate_vault, is_native_pegged_token, parse_token

NETWORKS_DIR = Path(__file__).resolve().parent / "networks"
DEFAULT_NETWORK = "mainnet"


class TokenConfig(BaseModel):
    address: Optional[str] = None
    ticker: str
    decimals: int = 18
    supports_permit: bool = False


class CollateralRoute(BaseModel):
    """Route of one collateral token; without an address the vault kind picks the manager."""

    position_manager: Optional[str] = None


class UnderlyingConfig(BaseModel):
    supported_collateral_tokens: Dict[Token, CollateralRoute]


class SwapRouterConfig(BaseModel):
    base_url: str
    from_address: str
    max_slippage: Decimal
    timeout_sec: float = 15.0


class NetworkConfig(BaseModel):
    network_id: int
    name: str
    position_manager: str
    position_manager_steth: str
    interest_rate_position_manager: str
    one_step_leverage: str
    r_savings_module: str
    tokens: Dict[Token, TokenConfig]
    underlying_tokens: Dict[Token, UnderlyingConfig]
    swap_routers: Dict[str, SwapRouterConfig] = {}

    def token(self, token: Token) -> TokenConfig:
        try:
            return self.tokens[token]
        except KeyError as exc:
            raise UnsupportedCombinationError(f"Token {token} is not configured on {self.name}") from exc

    def get_token_address(self, token: Token) -> Optional[str]:
        """Return the token contract address, ``None`` for the native asset."""

        return self.token(token).address

    def token_for_address(self, address: str) -> Optional[Token]:
        """Reverse lookup; legacy v1 tokens resolve to their current ticker."""

        lowered = address.lower()
        for token in Token:
            config = self.tokens.get(token)
            if config is None or config.address is None:
                continue
            if config.address.lower() == lowered:
                if token == Token.WSTETH_V1:
                    return Token.WSTETH
                if token == Token.RETH_V1:
                    return Token.RETH
                return token
        return None

    def supported_collateral_tokens(self, underlying: Token) -> FrozenSet[Token]:
        config = self.underlying_tokens.get(underlying)
        if config is None:
            return frozenset()
        return frozenset(config.supported_collateral_tokens)

    def get_position_manager_address(self, underlying: Token, collateral: Token) -> str:
        config = self.underlying_tokens.get(underlying)
        if config is None or collateral not in config.supported_collateral_tokens:
            raise UnsupportedCombinationError(
                f"Underlying collateral token {underlying} does not support collateral token {collateral}"
            )
        route = config.supported_collateral_tokens[collateral]
        if route.position_manager is not None:
            return route.position_manager
        if is_interest_rate_vault(underlying):
            return self.interest_rate_position_manager
        if is_native_pegged_token(collateral):
            return self.position_manager_steth
        if collateral == underlying:
            return self.position_manager
        raise UnsupportedCombinationError(f"No position manager configured for {collateral} on the {underlying} vault")

    def swap_router(self, name: str) -> SwapRouterConfig:
        try:
            return self.swap_routers[name]
        except KeyError as exc:
            raise UnsupportedCombinationError(f"Swap router {name} is not supported") from exc


def load_config(path: str | Path) -> NetworkConfig:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return NetworkConfig(**data)


def load_network_config(network: Optional[str] = None) -> NetworkConfig:
    """Load the configuration selected by ``network``, ``VAULT_CONFIG_PATH`` or ``VAULT_NETWORK``."""

    override = os.getenv("VAULT_CONFIG_PATH")
    if network is None and override:
        return load_config(override)
    name = network or os.getenv("VAULT_NETWORK", DEFAULT_NETWORK)
    path = NETWORKS_DIR / f"{name}.yaml"
    if not path.exists():
        raise ValueError(f"Unknown network: {name}")
    return load_config(path)


def with_token_overrides(config: NetworkConfig, token: Token | str, **fields) -> NetworkConfig:
    """Return a copy of ``config`` with some fields of one token replaced."""

    key = parse_token(token)
    tokens = dict(config.tokens)
    tokens[key] = tokens[key].model_copy(update=fields)
    return config.model_copy(update={"tokens": tokens})
