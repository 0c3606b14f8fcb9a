"""Dry-run ledger and local signer tests."""

import unittest

from position_core.errors import AuthorizationFailure
from position_core.tokens import Token
from settings.config import load_network_config

from ledger_adapter.calls import whitelist_call
from ledger_adapter.models import LedgerCall, PermitRequest, PermitSignature
from ledger_adapter.signer import LocalPermitSigner
from ledger_adapter.simulator import DryRunLedger, SimulationError

SPENDER = "0x00000000000000000000000000000000000000bb"


class DryRunLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_network_config("mainnet")
        self.ledger = DryRunLedger(self.config, gas_price_wei=2)
        self.owner = "0x00000000000000000000000000000000000000AA"
        self.token = self.config.get_token_address(Token.R)

    def test_approve_updates_allowance(self) -> None:
        handle = self.ledger.submit(LedgerCall(self.token, "approve", (SPENDER, 500)), self.owner)
        self.ledger.wait(handle)
        self.assertEqual(self.ledger.allowance(self.token.upper(), self.owner.lower(), SPENDER), 500)

    def test_whitelist_updates_state(self) -> None:
        self.assertFalse(self.ledger.is_delegate_whitelisted(self.owner, SPENDER))
        self.ledger.submit(whitelist_call(self.config.position_manager, SPENDER), self.owner)
        self.assertTrue(self.ledger.is_delegate_whitelisted(self.owner, SPENDER))

    def test_permit_consumption_bumps_nonce(self) -> None:
        signature = PermitSignature(token=self.token, value=1, deadline=1, v=27, r="0x01", s="0x02")
        self.ledger.submit(LedgerCall(SPENDER, "managePosition", (1, True, signature)), self.owner)
        self.assertEqual(self.ledger.permit_nonce(self.token, self.owner), 1)

    def test_code_defaults_to_eoa(self) -> None:
        self.assertEqual(self.ledger.get_code(self.owner), "0x")
        self.ledger.deploy_code(self.owner)
        self.assertNotEqual(self.ledger.get_code(self.owner.lower()), "0x")

    def test_forced_revert(self) -> None:
        ledger = DryRunLedger(self.config, fail_methods=("approve", "managePosition"))
        with self.assertRaises(AuthorizationFailure):
            ledger.submit(LedgerCall(self.token, "approve", (SPENDER, 1)), self.owner)
        with self.assertRaises(SimulationError):
            ledger.submit(LedgerCall(SPENDER, "managePosition", ()), self.owner)
        self.assertFalse(ledger.summary().success)

    def test_invalid_call_rejected(self) -> None:
        with self.assertRaises(SimulationError):
            self.ledger.submit(LedgerCall("", "approve", ()), self.owner)
        with self.assertRaises(SimulationError):
            self.ledger.submit(LedgerCall(SPENDER, "managePosition", (), value=-1), self.owner)

    def test_summary_totals(self) -> None:
        self.ledger.submit(LedgerCall(self.token, "approve", (SPENDER, 1)), self.owner)
        self.ledger.submit(whitelist_call(self.config.position_manager, SPENDER), self.owner)
        summary = self.ledger.summary()
        self.assertTrue(summary.success)
        self.assertEqual(len(summary.tx_results), 2)
        self.assertEqual(summary.total_cost_wei, summary.total_gas_used * 2)


class LocalPermitSignerTests(unittest.TestCase):
    def _request(self, signer: LocalPermitSigner, nonce: int = 0) -> PermitRequest:
        return PermitRequest(
            token=Token.R,
            token_address="0x183015a9ba6ff60230fdeadc3f43b3d788b13e21",
            token_name="R",
            owner=signer.address,
            spender=SPENDER,
            value=10**18,
            nonce=nonce,
            deadline=1_700_001_800,
            chain_id=1,
        )

    def test_deterministic_signature(self) -> None:
        signer = LocalPermitSigner(b"\x01" * 32)
        first = signer.sign_permit(self._request(signer))
        second = signer.sign_permit(self._request(signer))
        self.assertEqual(first, second)
        self.assertIn(first.v, (27, 28))
        self.assertEqual(first.value, 10**18)
        self.assertFalse(first.is_empty)
        self.assertNotEqual(first, signer.sign_permit(self._request(signer, nonce=1)))

    def test_rejection_raises(self) -> None:
        signer = LocalPermitSigner(b"\x02" * 32, approve_request=lambda request: False)
        with self.assertRaises(AuthorizationFailure):
            signer.sign_permit(self._request(signer))

    def test_owner_mismatch(self) -> None:
        signer = LocalPermitSigner(b"\x03" * 32)
        other = LocalPermitSigner(b"\x04" * 32)
        with self.assertRaises(AuthorizationFailure):
            signer.sign_permit(self._request(other))

    def test_empty_seed(self) -> None:
        with self.assertRaises(ValueError):
            LocalPermitSigner(b"")


if __name__ == "__main__":
    unittest.main()
