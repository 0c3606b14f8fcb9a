"""R savings planning and position helper tests."""

import unittest
from decimal import Decimal

from position_core.errors import ValidationError
from position_core.models import Position
from position_core.tokens import Token
from settings.config import load_network_config
from ledger_adapter.calls import MAX_RAW_AMOUNT
from ledger_adapter.models import PermitSignature
from ledger_adapter.signer import LocalPermitSigner
from ledger_adapter.simulator import DryRunLedger

from step_engine.models import SavingsIntent, SavingsPrefetch, StepKind, StepType
from step_engine.planner import StepPlanner

NOW = 1_700_000_000
WEI = 10**18

SAVINGS = StepType(StepKind.SAVINGS, Token.R)


class SavingsPlanTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_network_config("mainnet")
        self.signer = LocalPermitSigner(b"\x22" * 32)
        self.ledger = DryRunLedger(self.config)
        self.planner = StepPlanner(self.config, self.ledger, self.signer, time_provider=lambda: NOW)
        self.module = self.config.r_savings_module

    def test_deposit_with_permit(self) -> None:
        sequence = self.planner.plan_savings(SavingsIntent(Decimal(100)))
        self.assertEqual(sequence.outline, (StepType(StepKind.PERMIT, Token.R), SAVINGS))
        self.assertTrue(sequence.needed_steps.debt_auth_needed)

        permit = sequence.next()
        signature = permit.action()
        self.assertEqual(signature.value, 100 * WEI)
        self.assertEqual(signature.token, self.config.get_token_address(Token.R))

        deposit = sequence.next(signature)
        self.assertEqual(deposit.kind, StepKind.SAVINGS)
        self.assertEqual(deposit.call.to_address, self.module)
        self.assertEqual(deposit.call.method, "depositWithPermit")
        self.assertEqual(deposit.call.args, (100 * WEI, self.signer.address, signature))
        self.ledger.wait(deposit.action())
        self.assertIsNone(sequence.next())
        self.assertTrue(sequence.done)

    def test_deposit_by_transaction_approves_module(self) -> None:
        intent = SavingsIntent(Decimal(50), approval_preference="transaction", frontend_tag="raft")
        sequence = self.planner.plan_savings(intent)
        self.assertEqual(sequence.outline, (StepType(StepKind.APPROVE, Token.R), SAVINGS))

        approve = sequence.next()
        self.assertEqual(approve.call.method, "approve")
        self.assertEqual(approve.call.args, (self.module, 50 * WEI))
        self.ledger.wait(approve.action())

        deposit = sequence.next()
        self.assertEqual(deposit.call.method, "deposit")
        self.assertEqual(deposit.call.args, (50 * WEI, self.signer.address))
        self.assertEqual(deposit.call.tag_data, "0x" + b"raft".hex())

    def test_deposit_within_allowance_is_single_step(self) -> None:
        sequence = self.planner.plan_savings(
            SavingsIntent(Decimal(10)), SavingsPrefetch(r_allowance=Decimal(10))
        )
        self.assertEqual(sequence.outline, (SAVINGS,))
        self.assertFalse(sequence.needed_steps.debt_auth_needed)
        self.assertEqual(sequence.next().call.method, "deposit")

    def test_cached_signature_skips_permit_step(self) -> None:
        cached = PermitSignature(
            token=self.config.get_token_address(Token.R),
            value=10 * WEI,
            deadline=NOW + 1800,
            v=27,
            r="0x" + "ab" * 32,
            s="0x" + "cd" * 32,
        )
        sequence = self.planner.plan_savings(
            SavingsIntent(Decimal(10)), SavingsPrefetch(r_permit_signature=cached)
        )
        self.assertEqual(sequence.outline, (SAVINGS,))
        deposit = sequence.next()
        self.assertEqual(deposit.call.method, "depositWithPermit")
        self.assertIs(deposit.call.args[2], cached)

    def test_withdraw_needs_no_authorization(self) -> None:
        sequence = self.planner.plan_savings(SavingsIntent("-25.5"))
        self.assertEqual(sequence.outline, (SAVINGS,))
        self.assertEqual(sequence.needed_steps.number_of_steps, 1)

        withdraw = sequence.next()
        owner = self.signer.address
        self.assertEqual(withdraw.call.method, "withdraw")
        self.assertEqual(withdraw.call.args, (int(Decimal("25.5") * WEI), owner, owner))

    def test_permit_resume_requires_signature(self) -> None:
        sequence = self.planner.plan_savings(SavingsIntent(Decimal(1)))
        sequence.next()
        with self.assertRaises(ValidationError) as raised:
            sequence.next(None)
        self.assertIn("R permit signature is required", str(raised.exception))
        self.assertTrue(sequence.done)

    def test_savings_intent_validation(self) -> None:
        with self.assertRaises(ValidationError):
            SavingsIntent(Decimal(0))
        with self.assertRaises(ValidationError):
            SavingsIntent(Decimal(1), approval_preference="smoke-signal")
        with self.assertRaises(ValidationError):
            SavingsIntent(Decimal(1), gas_limit_multiplier=Decimal(0))


class PositionHelperTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_network_config("mainnet")
        self.signer = LocalPermitSigner(b"\x33" * 32)
        self.ledger = DryRunLedger(self.config)
        self.planner = StepPlanner(self.config, self.ledger, self.signer, time_provider=lambda: NOW)
        self.position = Position(Token.WSTETH, collateral=Decimal(10), debt=Decimal(5000))

    def _final_call(self, sequence):
        step = sequence.next()
        while step.kind != StepKind.EXECUTE:
            resume = step.action() if step.kind == StepKind.PERMIT else None
            if resume is None:
                self.ledger.wait(step.action())
            step = sequence.next(resume)
        return step.call

    def test_open_plans_both_changes(self) -> None:
        empty = Position(Token.WSTETH)
        sequence = self.planner.open(empty, "2", "3000", approval_preference="transaction")
        call = self._final_call(sequence)
        self.assertIn(2 * WEI, call.args)
        self.assertIn(3000 * WEI, call.args)

    def test_open_rejects_non_positive_amounts(self) -> None:
        empty = Position(Token.WSTETH)
        with self.assertRaises(ValidationError) as collateral:
            self.planner.open(empty, Decimal(0), Decimal(3000))
        self.assertEqual(str(collateral.exception), "Collateral amount must be greater than 0")
        with self.assertRaises(ValidationError) as debt:
            self.planner.open(empty, Decimal(2), Decimal(-1))
        self.assertEqual(str(debt.exception), "Debt amount must be greater than 0")

    def test_single_sided_helpers_reject_non_positive_amounts(self) -> None:
        helpers = (
            self.planner.add_collateral,
            self.planner.withdraw_collateral,
            self.planner.borrow,
            self.planner.repay_debt,
        )
        for helper in helpers:
            with self.subTest(helper=helper.__name__):
                with self.assertRaises(ValidationError) as raised:
                    helper(self.position, Decimal(0))
                self.assertEqual(str(raised.exception), "Amount must be greater than 0.")

    def test_withdraw_collateral_needs_no_authorization(self) -> None:
        sequence = self.planner.withdraw_collateral(self.position, Decimal(1))
        self.assertEqual(sequence.outline, (StepType(StepKind.EXECUTE),))

    def test_borrow_needs_no_authorization(self) -> None:
        sequence = self.planner.borrow(self.position, "100")
        self.assertEqual(sequence.outline, (StepType(StepKind.EXECUTE),))

    def test_add_collateral_authorizes_collateral_only(self) -> None:
        sequence = self.planner.add_collateral(self.position, Decimal(1))
        self.assertTrue(sequence.needed_steps.collateral_auth_needed)
        self.assertFalse(sequence.needed_steps.debt_auth_needed)

    def test_repay_debt_authorizes_debt_only(self) -> None:
        sequence = self.planner.repay_debt(self.position, Decimal(100))
        self.assertFalse(sequence.needed_steps.collateral_auth_needed)
        self.assertTrue(sequence.needed_steps.debt_auth_needed)

    def test_close_plans_full_repayment(self) -> None:
        sequence = self.planner.close(self.position, approval_preference="transaction")
        self.assertEqual(sequence.outline, (StepType(StepKind.APPROVE, Token.R), StepType(StepKind.EXECUTE)))
        approve = sequence.next()
        self.assertEqual(approve.call.args[1], MAX_RAW_AMOUNT)


if __name__ == "__main__":
    unittest.main()
