"""CommandExecution aggregate (CQRS) — one in-game command owed to a customer.

Created by the fulfillment generator when an order completes (one per unit
purchased) and afterwards changed only through the executor protocol in
`storefront.fulfillment.execution`. An executor claims a pending item, runs
the command against the game server and reports the result. Failed attempts
return the item to the queue until `max_attempts` is reached; then it stays
`Failed` until an operator retries it.

State Machine:
    PENDING → IN_PROGRESS → COMPLETED
    IN_PROGRESS → PENDING (attempt failed, ceiling not reached)
    IN_PROGRESS → FAILED (attempt failed, ceiling reached)
    FAILED → PENDING (operator retry, attempts reset)
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.fulfillment.events import (
    CommandClaimed,
    CommandExecuted,
    CommandExecutionFailed,
    CommandQueued,
    CommandRetryRequested,
)

DEFAULT_MAX_ATTEMPTS = 3


class CommandExecutionStatus(Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In_Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    CommandExecutionStatus.PENDING: {CommandExecutionStatus.IN_PROGRESS},
    CommandExecutionStatus.IN_PROGRESS: {
        CommandExecutionStatus.COMPLETED,
        CommandExecutionStatus.PENDING,
        CommandExecutionStatus.FAILED,
    },
    CommandExecutionStatus.COMPLETED: set(),  # Terminal
    CommandExecutionStatus.FAILED: {CommandExecutionStatus.PENDING},  # operator retry
}


@storefront.aggregate
class CommandExecution:
    order_id = Identifier(required=True)
    package_id = Identifier(required=True)
    username = String(required=True, max_length=16)
    command = Text(required=True)
    status = String(
        choices=CommandExecutionStatus,
        default=CommandExecutionStatus.PENDING.value,
    )
    attempts = Integer(default=0, min_value=0)
    max_attempts = Integer(default=DEFAULT_MAX_ATTEMPTS, min_value=1)
    last_error = String(max_length=2000)
    claimed_by = String(max_length=255)
    claimed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    executed_at = DateTime()

    @classmethod
    def queue(
        cls,
        order_id: str,
        package_id: str,
        username: str,
        command: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        now = datetime.now(UTC)
        item = cls(
            order_id=order_id,
            package_id=package_id,
            username=username,
            command=command,
            status=CommandExecutionStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            created_at=now,
            updated_at=now,
        )
        item.raise_(
            CommandQueued(
                command_execution_id=str(item.id),
                order_id=str(order_id),
                package_id=str(package_id),
                username=username,
                command=command,
                queued_at=now,
            )
        )
        return item

    def _assert_can_transition(self, target_status: CommandExecutionStatus) -> None:
        current = CommandExecutionStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def is_claimable(self) -> bool:
        return self.status == CommandExecutionStatus.PENDING.value and self.attempts < self.max_attempts

    def claim(self, worker_id: str) -> None:
        """Mark the item as taken by `worker_id`. Only pending items can be claimed."""
        self._assert_can_transition(CommandExecutionStatus.IN_PROGRESS)
        if self.attempts >= self.max_attempts:
            raise ValidationError({"attempts": [f"Maximum attempts ({self.max_attempts}) exhausted"]})

        now = datetime.now(UTC)
        self.status = CommandExecutionStatus.IN_PROGRESS.value
        self.claimed_by = worker_id
        self.claimed_at = now
        self.updated_at = now
        self.raise_(
            CommandClaimed(
                command_execution_id=str(self.id),
                claimed_by=worker_id,
                claimed_at=now,
            )
        )

    def record_success(self) -> None:
        self._assert_can_transition(CommandExecutionStatus.COMPLETED)
        now = datetime.now(UTC)
        self.attempts = (self.attempts or 0) + 1
        self.status = CommandExecutionStatus.COMPLETED.value
        self.last_error = None
        self.executed_at = now
        self.updated_at = now
        self.raise_(
            CommandExecuted(
                command_execution_id=str(self.id),
                order_id=str(self.order_id),
                attempts=self.attempts,
                executed_at=now,
            )
        )

    def record_failure(self, error: str | None) -> None:
        """Count a failed attempt; park the item in `Failed` once the ceiling is hit."""
        self._assert_can_transition(CommandExecutionStatus.FAILED)
        now = datetime.now(UTC)
        self.attempts = (self.attempts or 0) + 1
        permanent = self.attempts >= self.max_attempts
        self.status = (
            CommandExecutionStatus.FAILED.value if permanent else CommandExecutionStatus.PENDING.value
        )
        self.last_error = error or "Command execution failed"
        self.claimed_by = None
        self.claimed_at = None
        self.updated_at = now
        self.raise_(
            CommandExecutionFailed(
                command_execution_id=str(self.id),
                order_id=str(self.order_id),
                attempts=self.attempts,
                max_attempts=self.max_attempts,
                error=self.last_error,
                permanent=permanent,
                failed_at=now,
            )
        )

    def reset_for_retry(self) -> None:
        """Operator escape hatch: send a failed item back with a fresh attempt budget."""
        if self.status != CommandExecutionStatus.FAILED.value:
            raise ValidationError({"status": ["Only failed commands can be retried"]})

        now = datetime.now(UTC)
        self.status = CommandExecutionStatus.PENDING.value
        self.attempts = 0
        self.last_error = None
        self.claimed_by = None
        self.claimed_at = None
        self.updated_at = now
        self.raise_(
            CommandRetryRequested(
                command_execution_id=str(self.id),
                order_id=str(self.order_id),
                requested_at=now,
            )
        )
