"""
Race condition tests for concurrent subscription requests.
"""
import asyncio

import pytest

from conftest import RecordingGateway
from subscription_platform.core.repository import SubscriptionRepository
from subscription_platform.core.workflow import SubscriptionPaymentError, SubscriptionWorkflow
from subscription_platform.integrations.payment_gateway import PaymentError, PaymentErrorType
from subscription_platform.integrations.payment_simulator import SimulatedPaymentProcessor


class TestRaceConditions:
    """Test suite for race condition scenarios."""

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_concurrent_creates_get_distinct_ids(self, repository: SubscriptionRepository) -> None:
        """
        Test concurrent creates through the workflow.

        Every request should be stored once under its own ID.
        """
        workflow = SubscriptionWorkflow(repository, RecordingGateway(delay=0.01))

        results = await asyncio.gather(
            *(workflow.create_subscription(f"user_{i}", "basic") for i in range(50))
        )

        ids = [subscription.id for subscription, _ in results]
        assert len(set(ids)) == 50
        assert repository.count() == 50

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_concurrent_failures_leave_no_records(self, repository: SubscriptionRepository) -> None:
        """
        Test concurrent creates that all fail payment.

        Each failed create should remove exactly its own record.
        """
        survivor = repository.create("u0", "premium")
        gateway = RecordingGateway(
            error=PaymentError("insufficient funds in account", PaymentErrorType.INSUFFICIENT_FUNDS),
            delay=0.01,
        )
        workflow = SubscriptionWorkflow(repository, gateway)

        results = await asyncio.gather(
            *(workflow.create_subscription(f"user_{i}", "premium") for i in range(30)),
            return_exceptions=True,
        )

        assert all(isinstance(r, SubscriptionPaymentError) for r in results)
        assert repository.get_all() == [survivor]

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_mixed_outcomes_keep_only_paid_records(self, repository: SubscriptionRepository) -> None:
        """
        Test concurrent creates where payment randomly fails.

        Exactly the successfully paid subscriptions should remain.
        """
        gateway = SimulatedPaymentProcessor(
            processing_delay=0.001,
            enable_failures=True,
            failure_rate=0.5,
            extra_delay_max=0,
        )
        workflow = SubscriptionWorkflow(repository, gateway)

        results = await asyncio.gather(
            *(workflow.create_subscription(f"user_{i}", "basic") for i in range(40)),
            return_exceptions=True,
        )

        paid = {r[0].id for r in results if isinstance(r, tuple)}
        failed = [r for r in results if isinstance(r, SubscriptionPaymentError)]
        assert len(paid) + len(failed) == 40
        assert {s.id for s in repository.get_all()} == paid

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_reads_during_creates(self, repository: SubscriptionRepository) -> None:
        workflow = SubscriptionWorkflow(repository, RecordingGateway(delay=0.005))

        async def reader() -> int:
            seen = 0
            for _ in range(20):
                seen = max(seen, len(workflow.list_subscriptions()))
                await asyncio.sleep(0.001)
            return seen

        outcome = await asyncio.gather(
            reader(),
            *(workflow.create_subscription(f"user_{i}", "premium") for i in range(20)),
        )

        assert outcome[0] <= 20
        assert repository.count() == 20
