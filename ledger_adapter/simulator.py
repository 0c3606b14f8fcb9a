"""In-memory ledger that records submitted calls without network access."""

import logging
from typing import Dict, Iterable, List, Set, Tuple

from position_core.errors import AuthorizationFailure
from settings.config import NetworkConfig

from .models import DryRunResult, DryRunTxResult, LedgerCall, PermitSignature, TransactionHandle

logger = logging.getLogger(__name__)


class SimulationError(ValueError):
    """Raised when a dry-run simulation cannot be performed."""


_DEFAULT_GAS_USED = 21_000
_DEFAULT_GAS_PRICE_WEI = 1
_GAS_USED: Dict[str, int] = {
    "approve": 46_000,
    "whitelistDelegate": 48_000,
    "managePosition": 420_000,
    "managePositionStETH": 480_000,
    "managePositionETH": 470_000,
    "manageLeveragedPosition": 900_000,
    "deposit": 95_000,
    "depositWithPermit": 130_000,
    "withdraw": 90_000,
}
_AUTHORIZATION_METHODS = frozenset({"approve", "whitelistDelegate"})
_EOA_CODE = "0x"


class DryRunLedger:
    """Dry-run ledger state: allowances, delegate whitelists, contract code and nonces."""

    def __init__(
        self,
        config: NetworkConfig,
        gas_price_wei: int = _DEFAULT_GAS_PRICE_WEI,
        fail_methods: Iterable[str] = (),
    ) -> None:
        self._config = config
        self._gas_price_wei = gas_price_wei
        self._fail_methods = frozenset(fail_methods)
        self._allowances: Dict[Tuple[str, str, str], int] = {}
        self._whitelisted: Set[Tuple[str, str]] = set()
        self._code: Dict[str, str] = {}
        self._nonces: Dict[Tuple[str, str], int] = {}
        self._results: List[DryRunTxResult] = []
        self._handles: Dict[str, TransactionHandle] = {}

    def set_allowance(self, token_address: str, owner: str, spender: str, amount: int) -> None:
        self._allowances[_key(token_address, owner, spender)] = amount

    def set_whitelisted(self, owner: str, delegate: str, enabled: bool = True) -> None:
        pair = (owner.lower(), delegate.lower())
        if enabled:
            self._whitelisted.add(pair)
        else:
            self._whitelisted.discard(pair)

    def deploy_code(self, address: str, code: str = "0x6080") -> None:
        self._code[address.lower()] = code

    def get_code(self, address: str) -> str:
        return self._code.get(address.lower(), _EOA_CODE)

    def allowance(self, token_address: str, owner: str, spender: str) -> int:
        return self._allowances.get(_key(token_address, owner, spender), 0)

    def is_delegate_whitelisted(self, owner: str, delegate: str) -> bool:
        return (owner.lower(), delegate.lower()) in self._whitelisted

    def permit_nonce(self, token_address: str, owner: str) -> int:
        return self._nonces.get((token_address.lower(), owner.lower()), 0)

    def submit(self, call: LedgerCall, sender: str) -> TransactionHandle:
        _validate_call(call)
        tx_id = f"dry-run-{len(self._results) + 1}"
        gas_used = _GAS_USED.get(call.method, _DEFAULT_GAS_USED)
        cost = gas_used * self._gas_price_wei

        if call.method in self._fail_methods:
            self._results.append(
                DryRunTxResult(
                    tx_id=tx_id,
                    method=call.method,
                    success=False,
                    gas_used=gas_used,
                    cost_wei=cost,
                    notes=("Reverted by dry-run configuration.",),
                )
            )
            logger.warning("Dry-run %s reverted: %s", tx_id, call.method)
            if call.method in _AUTHORIZATION_METHODS:
                raise AuthorizationFailure(f"{call.method} transaction {tx_id} reverted")
            raise SimulationError(f"{call.method} transaction {tx_id} reverted")

        self._apply(call, sender)
        self._results.append(
            DryRunTxResult(
                tx_id=tx_id,
                method=call.method,
                success=True,
                gas_used=gas_used,
                cost_wei=cost,
                notes=("Dry-run only; no execution performed.",),
            )
        )
        handle = TransactionHandle(tx_id=tx_id, sender=sender, call=call)
        self._handles[tx_id] = handle
        logger.debug("Dry-run %s recorded: %s -> %s", tx_id, call.method, call.to_address)
        return handle

    def wait(self, handle: TransactionHandle) -> None:
        if handle.tx_id not in self._handles:
            raise SimulationError(f"Unknown transaction: {handle.tx_id}")

    def summary(self) -> DryRunResult:
        results = tuple(self._results)
        return DryRunResult(
            success=all(result.success for result in results),
            tx_results=results,
            total_gas_used=sum(result.gas_used for result in results),
            total_cost_wei=sum(result.cost_wei for result in results),
            notes=("Simulation completed without network calls.",),
        )

    def _apply(self, call: LedgerCall, sender: str) -> None:
        if call.method == "approve":
            spender, amount = call.args
            self.set_allowance(call.to_address, sender, str(spender), int(amount))
        elif call.method == "whitelistDelegate":
            delegate, enabled = call.args
            self.set_whitelisted(sender, str(delegate), bool(enabled))
        else:
            for signature in _permit_signatures(call):
                key = (signature.token.lower(), sender.lower())
                self._nonces[key] = self._nonces.get(key, 0) + 1


def _permit_signatures(call: LedgerCall) -> Tuple[PermitSignature, ...]:
    return tuple(
        arg for arg in call.args if isinstance(arg, PermitSignature) and not arg.is_empty
    )


def _validate_call(call: LedgerCall) -> None:
    if not call.to_address:
        raise SimulationError("Call must include a target address.")
    if not call.to_address.startswith("0x"):
        raise SimulationError("Target address must be hex-prefixed.")
    if call.value < 0:
        raise SimulationError("Call value must be non-negative.")
    if call.tag_data and not call.tag_data.startswith("0x"):
        raise SimulationError("Tag data must be hex-prefixed.")


def _key(token_address: str, owner: str, spender: str) -> Tuple[str, str, str]:
    return (token_address.lower(), owner.lower(), spender.lower())
