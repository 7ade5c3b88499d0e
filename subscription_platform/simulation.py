"""
Traffic generator for a running subscription service.

Each cycle creates a few subscriptions per plan, reads them back, sends
requests that are expected to fail (bad JSON, unknown IDs), and updates and
deletes random survivors. Outcomes are tallied per operation and status code
so a run can be compared against the service's metrics and logs.
"""
import random
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
import structlog

from subscription_platform.core.models import PLAN_PRICES

logger = structlog.get_logger(__name__)


@dataclass
class TrafficState:
    """What a simulation run has learned so far."""

    subscription_ids: List[str] = field(default_factory=list)
    outcomes: Counter = field(default_factory=Counter)
    cycles: int = 0

    def record(self, operation: str, status_code: int) -> None:
        self.outcomes[(operation, status_code)] += 1


class TrafficSimulator:
    """Drives a mix of valid and invalid requests against the service."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        creates_per_plan: int = 3,
        reads_per_cycle: int = 4,
        errors_per_cycle: int = 2,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.creates_per_plan = creates_per_plan
        self.reads_per_cycle = reads_per_cycle
        self.errors_per_cycle = errors_per_cycle
        self.rng = rng or random.Random()
        self.state = TrafficState()

    async def _create(self, plan: str) -> None:
        user_id = f"sim_user_{time.time_ns()}"
        response = await self.client.post("/subscriptions", json={"user_id": user_id, "plan": plan})
        self.state.record("create", response.status_code)
        if response.status_code == httpx.codes.CREATED:
            self.state.subscription_ids.append(response.json()["id"])

    async def _read(self) -> None:
        response = await self.client.get("/subscriptions")
        self.state.record("list", response.status_code)
        if self.state.subscription_ids:
            subscription_id = self.rng.choice(self.state.subscription_ids)
            response = await self.client.get(f"/subscriptions/{subscription_id}")
            self.state.record("get", response.status_code)

    async def _errors(self) -> None:
        response = await self.client.post(
            "/subscriptions",
            content="{invalid_json",
            headers={"Content-Type": "application/json"},
        )
        self.state.record("create_invalid_json", response.status_code)

        response = await self.client.get(f"/subscriptions/nonexistent_{self.state.cycles}")
        self.state.record("get_missing", response.status_code)

    async def _update(self) -> None:
        if not self.state.subscription_ids:
            return
        subscription_id = self.rng.choice(self.state.subscription_ids)
        response = await self.client.put(
            f"/subscriptions/{subscription_id}",
            json={"user_id": "updated_sim_user", "plan": "premium"},
        )
        self.state.record("update", response.status_code)

    async def _delete(self) -> None:
        if len(self.state.subscription_ids) <= 3:
            return
        subscription_id = self.rng.choice(self.state.subscription_ids)
        response = await self.client.delete(f"/subscriptions/{subscription_id}")
        self.state.record("delete", response.status_code)
        self.state.subscription_ids.remove(subscription_id)

    async def run_cycle(self) -> None:
        """Run one full traffic cycle."""
        for plan in PLAN_PRICES:
            for _ in range(self.creates_per_plan):
                await self._create(plan)

        for _ in range(self.reads_per_cycle):
            await self._read()

        for _ in range(self.errors_per_cycle):
            await self._errors()

        await self._update()
        await self._delete()

        self.state.cycles += 1
        logger.info(
            "simulation_cycle_completed",
            cycle=self.state.cycles,
            live_subscriptions=len(self.state.subscription_ids),
        )

    async def run(self, cycles: int) -> TrafficState:
        for _ in range(cycles):
            await self.run_cycle()
        return self.state
