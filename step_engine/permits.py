"""Decide whether an authorization may use a signed permit."""

import logging
from dataclasses import dataclass
from typing import Callable

from position_core.errors import UpstreamReadError
from position_core.tokens import Token
from settings.config import NetworkConfig

from .models import ApprovalPreference

logger = logging.getLogger(__name__)

_EMPTY_CODE = ("", "0x")


@dataclass(frozen=True)
class PermitChecks:
    can_signer_sign: bool
    can_token_use_signature: bool

    def allows_signature(self, preference: ApprovalPreference) -> bool:
        return (
            self.can_signer_sign
            and self.can_token_use_signature
            and preference == ApprovalPreference.SIGNATURE
        )


class PermitCapabilityChecker:
    """Contract accounts cannot sign off-ledger, so they always approve on-ledger."""

    def __init__(self, config: NetworkConfig, code_reader: Callable[[str], str]) -> None:
        self._config = config
        self._code_reader = code_reader

    def can_signer_sign(self, signer_address: str) -> bool:
        try:
            code = self._code_reader(signer_address)
        except UpstreamReadError:
            raise
        except Exception as exc:
            raise UpstreamReadError(f"Code read for {signer_address} failed: {exc}") from exc
        logger.debug("Code probe for %s returned %d byte(s)", signer_address, max(len(code or "") - 2, 0) // 2)
        return (code or "") in _EMPTY_CODE

    def can_token_use_signature(self, token: Token) -> bool:
        return self._config.token(token).supports_permit

    def check(self, signer_address: str, token: Token) -> PermitChecks:
        return PermitChecks(
            can_signer_sign=self.can_signer_sign(signer_address),
            can_token_use_signature=self.can_token_use_signature(token),
        )
