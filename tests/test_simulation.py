"""
Tests for the traffic simulator and CLI wiring.
"""
import random

import httpx
import pytest
from typer.testing import CliRunner

from subscription_platform.cli import app as cli_app
from subscription_platform.simulation import TrafficSimulator


class TestTrafficSimulator:
    """Test suite for simulated traffic against the subscription service."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cycle_outcomes(self, api_client: httpx.AsyncClient) -> None:
        simulator = TrafficSimulator(api_client, creates_per_plan=2, rng=random.Random(7))

        state = await simulator.run(cycles=2)

        assert state.cycles == 2
        assert state.outcomes[("create", 201)] == 8
        assert state.outcomes[("create_invalid_json", 400)] == 4
        assert state.outcomes[("get_missing", 404)] == 4
        assert state.outcomes[("update", 200)] == 2
        assert state.outcomes[("delete", 204)] == 2
        assert len(state.subscription_ids) == 6

        listing = await api_client.get("/subscriptions")
        assert {s["id"] for s in listing.json()} == set(state.subscription_ids)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_creates_are_not_tracked(self, test_settings, failing_processor) -> None:
        from subscription_platform.api.main import create_app
        from subscription_platform.core.repository import SubscriptionRepository
        from subscription_platform.core.workflow import SubscriptionWorkflow
        from subscription_platform.integrations.payment_gateway import PaymentErrorType

        workflow = SubscriptionWorkflow(
            SubscriptionRepository(), failing_processor(PaymentErrorType.INVALID_CARD)
        )
        app = create_app(settings=test_settings, workflow=workflow)

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            state = await TrafficSimulator(client, creates_per_plan=1).run(cycles=1)

        assert state.outcomes[("create", 500)] == 2
        assert state.subscription_ids == []
        assert ("update", 200) not in state.outcomes


class TestCli:
    """Test suite for the command line."""

    @pytest.mark.unit
    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(cli_app, ["--help"])

        assert result.exit_code == 0
        assert "serve" in result.output
        assert "serve-payments" in result.output
        assert "simulate" in result.output

    @pytest.mark.unit
    def test_simulate_reports_connection_errors(self) -> None:
        result = CliRunner().invoke(
            cli_app, ["simulate", "--base-url", "http://127.0.0.1:9", "--cycles", "1", "--interval", "0"]
        )

        assert result.exit_code == 1
