"""
Audit Logger

DESIGN DECISION: Every significant action in the engine is logged.
This provides:
1. Traceability of limit changes and contributions
2. Debugging capability when storage misbehaves
3. A user-visible history of unlocked achievements

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the flow if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from stackr.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from stackr.models.challenge import Challenge
from stackr.models.guardrail import (
    GuardrailCheckResult,
    SpendingLimit,
    SpendingLogEntry,
    SpendingReflection,
)
from stackr.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("stackr.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_limit_set(
        self,
        limit: SpendingLimit,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.limit_set(
            user_id=limit.user_id,
            limit_id=limit.id,
            category=limit.category,
            amount=str(limit.limit_amount),
            cycle=limit.cycle.value,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_limit_removed(
        self,
        user_id: str,
        limit_id: UUID,
        hard_delete: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.limit_removed(
            user_id=user_id,
            limit_id=limit_id,
            hard_delete=hard_delete,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_spending(
        self,
        entry: SpendingLogEntry,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.spending_logged(
            user_id=entry.user_id,
            entry_id=entry.id,
            category=entry.category,
            amount=str(entry.amount_spent),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_guardrail_alerts(
        self,
        result: GuardrailCheckResult,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log one event per warning or overage in a check result."""
        for alert in result.alerts:
            event = AuditEventBuilder.guardrail_alert(
                user_id=result.user_id,
                category=alert.category,
                status=alert.status.value,
                percentage=alert.percentage,
                correlation_id=correlation_id,
            )
            await self.log(event)

    async def log_reflection_saved(
        self,
        reflection: SpendingReflection,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.reflection_saved(
            user_id=reflection.user_id,
            reflection_id=reflection.id,
            overall_status=reflection.overall_status.value,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_challenge_created(
        self,
        challenge: Challenge,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.challenge_created(
            user_id=challenge.user_id,
            challenge_id=challenge.id,
            challenge_type=challenge.type.value,
            target_amount=challenge.target_amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_contribution(
        self,
        before: Challenge,
        after: Challenge,
        amount: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Log the outcome of one contribution.

        Emits the applied/ignored event, one event per newly unlocked
        achievement and a finish event when the status turned terminal.
        """
        if before.is_terminal:
            await self.log(AuditEventBuilder.contribution_ignored(
                user_id=before.user_id,
                challenge_id=before.id,
                status=before.status.value,
                correlation_id=correlation_id,
            ))
            return

        await self.log(AuditEventBuilder.contribution_applied(
            user_id=after.user_id,
            challenge_id=after.id,
            amount=amount,
            progress=after.progress,
            streak=after.streak_count,
            correlation_id=correlation_id,
        ))

        for achievement in after.achievements[len(before.achievements):]:
            await self.log(AuditEventBuilder.achievement_unlocked(
                user_id=after.user_id,
                challenge_id=after.id,
                achievement_id=achievement.id,
                name=achievement.name,
                bonus_points=achievement.bonus_points,
                correlation_id=correlation_id,
            ))

        if after.is_terminal:
            await self.log(AuditEventBuilder.challenge_finished(
                user_id=after.user_id,
                challenge_id=after.id,
                status=after.status.value,
                current_amount=after.current_amount,
                correlation_id=correlation_id,
            ))

    async def log_contribution_rejected(
        self,
        challenge: Challenge,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.contribution_rejected(
            user_id=challenge.user_id,
            challenge_id=challenge.id,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        entity_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            entity_type=entity_type,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., logging a purchase).
    Pass it through all subsequent operations.
    """
    return uuid4()
