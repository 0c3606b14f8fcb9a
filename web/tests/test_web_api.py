"""Smoke tests for the vault steps web API."""

import unittest
from decimal import Decimal

try:
    from fastapi.testclient import TestClient
except ImportError:  # pragma: no cover - optional dependency
    TestClient = None

try:
    from web import app as web_app
except ImportError:  # pragma: no cover - optional dependency
    web_app = None

_POSITION = {"underlying_token": "wstETH-v1", "collateral": "10", "debt": "5000"}
_STETH_DEPOSIT = {
    "position": _POSITION,
    "intent": {"collateral_token": "stETH", "collateral_change": "1", "debt_change": "-1000"},
}


@unittest.skipIf(TestClient is None or web_app is None, "FastAPI not available")
class WebApiTests(unittest.TestCase):
    def setUp(self) -> None:
        web_app._reset_state()
        self.client = TestClient(web_app.app)

    def test_status_smoke(self) -> None:
        response = self.client.get("/api/status")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["network"], "mainnet")
        self.assertEqual(payload["execution_mode"], "SAFE")
        self.assertFalse(payload["armed"])
        self.assertEqual(payload["transactions"], 0)

    def test_position_health(self) -> None:
        response = self.client.post("/api/position/health", json={"position": _POSITION, "price": "1600"})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(Decimal(payload["collateral_ratio"]), Decimal("3.2"))
        self.assertEqual(Decimal(payload["liquidation_price_limit"]), Decimal(550))
        self.assertTrue(payload["is_valid"])

    def test_negative_position_amount_is_rejected(self) -> None:
        response = self.client.post(
            "/api/position/health",
            json={"position": {"underlying_token": "wstETH", "collateral": "-1"}, "price": "1600"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("negative", response.json()["error"])

    def test_steps_preview(self) -> None:
        response = self.client.post("/api/steps/preview", json=_STETH_DEPOSIT)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["steps"], ["WHITELIST", "APPROVE(stETH)", "PERMIT(R)", "EXECUTE"])
        self.assertEqual(payload["number_of_steps"], 4)

    def test_steps_preview_errors_return_400(self) -> None:
        response = self.client.post(
            "/api/steps/preview",
            json={"position": _POSITION, "intent": {"collateral_change": "0", "debt_change": "0"}},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Collateral and debt change cannot be both zero")

    def test_run_requires_mode_and_arm(self) -> None:
        response = self.client.post("/api/steps/run", json={**_STETH_DEPOSIT, "confirm_all": True})
        self.assertEqual(response.status_code, 400)

        self.client.post("/api/execution/mode", json={"mode": "manual"})
        response = self.client.post("/api/steps/run", json={**_STETH_DEPOSIT, "confirm_all": True})
        self.assertEqual(response.status_code, 400)
        self.assertIn("armed", response.json()["error"])

    def test_manual_run_and_replan(self) -> None:
        self.assertEqual(self.client.post("/api/execution/mode", json={"mode": "manual"}).status_code, 200)
        self.assertEqual(self.client.post("/api/execution/arm", json={"armed": True}).json(), {"armed": True})

        response = self.client.post("/api/steps/run", json={**_STETH_DEPOSIT, "confirm_all": True})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(
            [outcome["kind"] for outcome in payload["outcomes"]],
            ["WHITELIST", "APPROVE", "PERMIT", "EXECUTE"],
        )
        self.assertTrue(payload["dry_run"]["success"])

        # the session ledger now holds the whitelist and the stETH allowance
        response = self.client.post("/api/steps/preview", json=_STETH_DEPOSIT)
        self.assertEqual(response.json()["steps"], ["PERMIT(R)", "EXECUTE"])

    def test_guarded_mode_requires_kinds(self) -> None:
        response = self.client.post("/api/execution/mode", json={"mode": "guarded"})
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/execution/mode",
            json={"mode": "guarded", "allowed_step_kinds": ["permit", "execute"]},
        )
        self.assertEqual(response.status_code, 200)
        self.client.post("/api/execution/arm", json={"armed": True})
        response = self.client.post("/api/steps/run", json={**_STETH_DEPOSIT, "confirm_all": False})
        self.assertEqual(response.status_code, 400)
        self.assertIn("Policy violation", response.json()["error"])

    def test_leverage_solve_with_swap_price(self) -> None:
        response = self.client.post(
            "/api/leverage/solve",
            json={
                "position": {"underlying_token": "wstETH"},
                "leverage": "2",
                "principal_collateral_change": "1",
                "price": "3000",
                "borrowing_rate": "0.01",
                "swap_price": "0.00033",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["debt_change"]), Decimal("2912.621359223300970873"))


if __name__ == "__main__":
    unittest.main()
