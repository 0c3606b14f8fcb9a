"""Local permit signer with deterministic signatures for dry runs."""

import hashlib
import hmac
import logging
from typing import Callable, Optional

from position_core.errors import AuthorizationFailure

from .models import PermitRequest, PermitSignature

logger = logging.getLogger(__name__)

DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"


class LocalPermitSigner:
    """Signs permit requests with a key derived from a local seed.

    ``approve_request`` stands in for the owner's confirmation prompt; returning
    ``False`` rejects the signature.
    """

    def __init__(
        self,
        seed: bytes,
        derivation_path: str = DEFAULT_DERIVATION_PATH,
        approve_request: Optional[Callable[[PermitRequest], bool]] = None,
    ) -> None:
        if not seed:
            raise ValueError("Signer seed must be non-empty.")
        self._private_key = _derive_private_key(seed, derivation_path)
        self._address = _derive_address(self._private_key)
        self._approve_request = approve_request

    @property
    def address(self) -> str:
        return self._address

    def sign_permit(self, request: PermitRequest) -> PermitSignature:
        if request.owner.lower() != self._address.lower():
            raise AuthorizationFailure("Permit owner does not match the signer address.")
        if self._approve_request is not None and not self._approve_request(request):
            logger.info("Permit signature for %s rejected by signer", request.token)
            raise AuthorizationFailure(f"{request.token} permit signature was rejected")

        digest = hmac.new(self._private_key, _encode_request(request), hashlib.sha256).digest()
        s_digest = hmac.new(self._private_key, digest, hashlib.sha256).digest()
        return PermitSignature(
            token=request.token_address,
            value=request.value,
            deadline=request.deadline,
            v=27 + (digest[-1] & 1),
            r="0x" + digest.hex(),
            s="0x" + s_digest.hex(),
        )


def _encode_request(request: PermitRequest) -> bytes:
    payload = (
        f"{request.chain_id}|"
        f"{request.token_address.lower()}|"
        f"{request.token_name}|"
        f"{request.owner.lower()}|"
        f"{request.spender.lower()}|"
        f"{request.value}|"
        f"{request.nonce}|"
        f"{request.deadline}"
    )
    return payload.encode("utf-8")


def _derive_private_key(seed: bytes, path: str) -> bytes:
    return hmac.new(seed, path.encode("utf-8"), hashlib.sha256).digest()


def _derive_address(private_key: bytes) -> str:
    return "0x" + hashlib.sha256(private_key).hexdigest()[:40]
