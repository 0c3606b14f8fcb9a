"""Collaborator surfaces the planner consumes but does not implement."""

from typing import Protocol

from .models import LedgerCall, PermitRequest, PermitSignature, TransactionHandle


class LedgerClient(Protocol):
    def get_code(self, address: str) -> str:
        ...

    def allowance(self, token_address: str, owner: str, spender: str) -> int:
        ...

    def is_delegate_whitelisted(self, owner: str, delegate: str) -> bool:
        ...

    def permit_nonce(self, token_address: str, owner: str) -> int:
        ...

    def submit(self, call: LedgerCall, sender: str) -> TransactionHandle:
        ...

    def wait(self, handle: TransactionHandle) -> None:
        ...


class PermitSigner(Protocol):
    @property
    def address(self) -> str:
        ...

    def sign_permit(self, request: PermitRequest) -> PermitSignature:
        ...
