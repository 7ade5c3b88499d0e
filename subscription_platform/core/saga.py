"""
Saga execution with compensating actions.

A saga runs its steps in order. If a step fails, or the surrounding task is
cancelled, every step that already completed is compensated in reverse order,
each at most once.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

ForwardAction = Callable[[Dict[str, Any]], Awaitable[Any]]
CompensatingAction = Callable[[Dict[str, Any], Any], Awaitable[None]]


class SagaState(Enum):
    """Saga execution states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    COMPENSATING = "compensating"
    COMPENSATED = "compensated"


class StepStatus(Enum):
    """Step execution status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    COMPENSATED = "compensated"


class SagaStep:
    """
    Represents a single step in a saga.

    Each step has:
    - Forward action (the main operation)
    - Compensating action (undo operation), optional
    """

    def __init__(
        self,
        name: str,
        forward_action: ForwardAction,
        compensating_action: Optional[CompensatingAction] = None,
    ):
        """
        Initialize saga step.

        Args:
            name: Step name
            forward_action: Async function receiving the saga context
            compensating_action: Async function receiving the context and the
                forward action's result
        """
        self.name = name
        self.forward_action = forward_action
        self.compensating_action = compensating_action
        self.status = StepStatus.PENDING
        self.result: Optional[Any] = None
        self.error: Optional[str] = None

    async def execute(self, context: Dict[str, Any]) -> Any:
        """
        Execute the forward action.

        Raises:
            Exception: Whatever the forward action raised
        """
        logger.debug("saga_step_executing", step=self.name)

        try:
            self.result = await self.forward_action(context)
        except BaseException as e:
            self.status = StepStatus.FAILED
            self.error = str(e) or type(e).__name__
            raise

        self.status = StepStatus.COMPLETED
        logger.debug("saga_step_completed", step=self.name)
        return self.result

    async def compensate(self, context: Dict[str, Any]) -> bool:
        """
        Execute the compensating action.

        Returns:
            bool: True if the compensation ran
        """
        if self.compensating_action is None:
            return False

        if self.status != StepStatus.COMPLETED:
            logger.debug("saga_step_skip_compensation", step=self.name, status=self.status.value)
            return False

        logger.info("saga_step_compensating", step=self.name)
        # Marked before awaiting so a re-entrant call cannot run it twice.
        self.status = StepStatus.COMPENSATED
        await self.compensating_action(context, self.result)
        logger.info("saga_step_compensated", step=self.name)
        return True


@dataclass
class SagaResult:
    """Outcome of a saga run."""

    saga_id: str
    state: SagaState
    context: Dict[str, Any]
    steps_completed: int = 0
    steps_compensated: int = 0
    error: Optional[Exception] = None
    failed_step: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == SagaState.COMPLETED


@dataclass
class Saga:
    """An ordered set of steps with rollback on failure."""

    name: str = "unnamed_saga"
    saga_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    steps: List[SagaStep] = field(default_factory=list)
    state: SagaState = SagaState.PENDING
    context: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def add_step(
        self,
        name: str,
        forward_action: ForwardAction,
        compensating_action: Optional[CompensatingAction] = None,
    ) -> "Saga":
        """
        Add a step to the saga.

        Returns:
            Saga: Self for method chaining
        """
        self.steps.append(SagaStep(name, forward_action, compensating_action))
        return self

    async def execute(self) -> SagaResult:
        """
        Execute the saga.

        Executes all steps in order. If any step fails, executes compensating
        actions in reverse order and reports the failure in the result. Task
        cancellation is compensated the same way and then re-raised.

        Returns:
            SagaResult: Saga execution result
        """
        logger.debug("saga_execution_started", saga_id=self.saga_id, name=self.name)

        self.state = SagaState.IN_PROGRESS
        completed_steps: List[SagaStep] = []
        current: Optional[SagaStep] = None

        try:
            for current in self.steps:
                result = await current.execute(self.context)
                completed_steps.append(current)
                self.context[f"{current.name}_result"] = result

        except asyncio.CancelledError:
            logger.warning(
                "saga_cancelled",
                saga_id=self.saga_id,
                name=self.name,
                step=current.name if current else None,
            )
            await self._compensate(completed_steps)
            raise

        except Exception as e:
            logger.warning(
                "saga_step_failed",
                saga_id=self.saga_id,
                name=self.name,
                step=current.name if current else None,
                error=str(e),
            )
            compensated = await self._compensate(completed_steps)
            return SagaResult(
                saga_id=self.saga_id,
                state=self.state,
                context=self.context,
                steps_completed=len(completed_steps),
                steps_compensated=compensated,
                error=e,
                failed_step=current.name if current else None,
            )

        self.state = SagaState.COMPLETED
        self.completed_at = datetime.now(timezone.utc)

        logger.debug(
            "saga_completed_successfully",
            saga_id=self.saga_id,
            steps_completed=len(completed_steps),
        )

        return SagaResult(
            saga_id=self.saga_id,
            state=self.state,
            context=self.context,
            steps_completed=len(completed_steps),
        )

    async def _compensate(self, completed_steps: List[SagaStep]) -> int:
        """Run compensating actions for completed steps in reverse order."""
        self.state = SagaState.COMPENSATING
        compensated = 0

        for step in reversed(completed_steps):
            try:
                if await step.compensate(self.context):
                    compensated += 1
            except Exception as e:
                # Left for manual intervention; remaining steps still roll back.
                logger.error(
                    "saga_compensation_error",
                    saga_id=self.saga_id,
                    step=step.name,
                    error=str(e),
                )

        self.state = SagaState.COMPENSATED
        self.completed_at = datetime.now(timezone.utc)
        logger.info(
            "saga_compensation_completed",
            saga_id=self.saga_id,
            steps_compensated=compensated,
        )
        return compensated
