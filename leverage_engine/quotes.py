"""Swap-quote probe and its 1inch HTTP client."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from decimal import ROUND_DOWN, Decimal
from typing import Any, Callable, Dict, Optional, Protocol

from position_core.errors import UpstreamReadError, ValidationError
from position_core.fixed_point import ZERO, from_raw, mul, to_raw
from position_core.tokens import Token
from settings.config import NetworkConfig

from .models import SwapQuote

logger = logging.getLogger(__name__)

ONE_INCH = "1inch"


class SwapQuoteProbe(Protocol):
    def quote(self, from_token: Token, to_token: Token, amount: Decimal, slippage: Decimal) -> SwapQuote:
        ...


class OneInchQuoteClient:
    """Quotes swaps through the 1inch aggregator ``/swap`` endpoint."""

    def __init__(
        self,
        config: NetworkConfig,
        router: str = ONE_INCH,
        opener: Optional[Callable[..., Any]] = None,
        user_agent: str = "vault-steps/0.1",
    ) -> None:
        self._config = config
        self._router = config.swap_router(router)
        self._opener = opener or urllib.request.urlopen
        self._user_agent = user_agent

    def quote(self, from_token: Token, to_token: Token, amount: Decimal, slippage: Decimal) -> SwapQuote:
        if amount <= ZERO:
            raise ValidationError("Swap amount must be positive.")
        from_config = self._config.token(from_token)
        to_config = self._config.token(to_token)
        if from_config.address is None or to_config.address is None:
            raise ValidationError(f"Cannot quote a swap from {from_token} to {to_token}.")

        data = self.get_json(
            "/swap",
            {
                "fromTokenAddress": from_config.address,
                "toTokenAddress": to_config.address,
                "amount": to_raw(amount, from_config.decimals),
                "fromAddress": self._router.from_address,
                "slippage": str(mul(slippage, Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_DOWN)),
                "disableEstimate": "true",
            },
        )
        try:
            input_amount = from_raw(int(data["fromTokenAmount"]), int(data["fromToken"]["decimals"]))
            output_amount = from_raw(int(data["toTokenAmount"]), int(data["toToken"]["decimals"]))
            call_data = data["tx"]["data"]
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamReadError(f"Malformed swap quote: {exc}") from exc
        if input_amount <= ZERO:
            raise UpstreamReadError("Swap quote has a zero input amount.")

        logger.debug("Quoted %s %s -> %s %s", input_amount, from_token, output_amount, to_token)
        return SwapQuote(input_amount=input_amount, output_amount=output_amount, call_data=call_data)

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = params or {}
        qs = urllib.parse.urlencode(params, doseq=True)
        url = self._router.base_url.rstrip("/") + path
        if qs:
            url = url + "?" + qs

        req = urllib.request.Request(
            url=url,
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            method="GET",
        )
        try:
            with self._opener(req, timeout=self._router.timeout_sec) as resp:
                body = resp.read().decode("utf-8", errors="replace")
                return json.loads(body)
        except urllib.error.HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace")
            raise UpstreamReadError(f"Swap quote HTTP {e.code}: {raw[:200]}") from e
        except urllib.error.URLError as e:
            raise UpstreamReadError(f"Swap quote request failed: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise UpstreamReadError("Swap quote returned non-JSON response") from e
