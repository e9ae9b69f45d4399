"""
Audit Models for Stackr

Every significant action in the engine is logged for audit purposes.
This provides:
1. Traceability of limit changes and spending entries
2. A history of challenge progress and unlocked achievements
3. Debugging information when storage misbehaves

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Guardrails
    LIMIT_SET = "limit_set"
    LIMIT_DEACTIVATED = "limit_deactivated"
    LIMIT_REMOVED = "limit_removed"
    SPENDING_LOGGED = "spending_logged"
    GUARDRAIL_WARNING = "guardrail_warning"
    GUARDRAIL_OVERAGE = "guardrail_overage"
    REFLECTION_SAVED = "reflection_saved"

    # Challenges
    CHALLENGE_CREATED = "challenge_created"
    CONTRIBUTION_APPLIED = "contribution_applied"
    CONTRIBUTION_IGNORED = "contribution_ignored"
    CONTRIBUTION_REJECTED = "contribution_rejected"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    CHALLENGE_FINISHED = "challenge_finished"

    # Persistence
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - who and what is this about?
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'limit', 'spending', 'challenge')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one spending request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.limit_set(limit, correlation_id)
        event = AuditEventBuilder.contribution_applied(challenge, amount, correlation_id)
    """

    @staticmethod
    def limit_set(
        user_id: str,
        limit_id: UUID,
        category: str,
        amount: str,
        cycle: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LIMIT_SET,
            user_id=user_id,
            entity_type="limit",
            entity_id=limit_id,
            correlation_id=correlation_id,
            description=f"Spending limit set: {category} {amount}/{cycle}",
            details={
                "category": category,
                "limit_amount": amount,
                "cycle": cycle,
            },
            is_user_action=True,
        )

    @staticmethod
    def limit_removed(
        user_id: str,
        limit_id: UUID,
        hard_delete: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LIMIT_REMOVED
                if hard_delete
                else AuditEventType.LIMIT_DEACTIVATED
            ),
            user_id=user_id,
            entity_type="limit",
            entity_id=limit_id,
            correlation_id=correlation_id,
            description="Spending limit removed" if hard_delete else "Spending limit deactivated",
            is_user_action=True,
        )

    @staticmethod
    def spending_logged(
        user_id: str,
        entry_id: UUID,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_LOGGED,
            user_id=user_id,
            entity_type="spending",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Spending logged: {category} {amount}",
            details={
                "category": category,
                "amount_spent": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def guardrail_alert(
        user_id: str,
        category: str,
        status: str,
        percentage: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        over = status == "over"
        return AuditEvent(
            event_type=(
                AuditEventType.GUARDRAIL_OVERAGE
                if over
                else AuditEventType.GUARDRAIL_WARNING
            ),
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="limit",
            correlation_id=correlation_id,
            description=f"{category} is at {percentage:.0f}% of its limit",
            details={
                "category": category,
                "status": status,
                "percentage": percentage,
            },
        )

    @staticmethod
    def reflection_saved(
        user_id: str,
        reflection_id: UUID,
        overall_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFLECTION_SAVED,
            user_id=user_id,
            entity_type="reflection",
            entity_id=reflection_id,
            correlation_id=correlation_id,
            description=f"Weekly reflection saved ({overall_status})",
            details={
                "overall_status": overall_status,
            },
        )

    @staticmethod
    def challenge_created(
        user_id: Optional[str],
        challenge_id: UUID,
        challenge_type: str,
        target_amount: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_CREATED,
            user_id=user_id,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge created: {challenge_type} targeting {target_amount:g}",
            details={
                "type": challenge_type,
                "target_amount": target_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def contribution_applied(
        user_id: Optional[str],
        challenge_id: UUID,
        amount: float,
        progress: int,
        streak: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_APPLIED,
            user_id=user_id,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Contribution of {amount:g} applied ({progress}% complete)",
            details={
                "amount": amount,
                "progress": progress,
                "streak": streak,
            },
            is_user_action=True,
        )

    @staticmethod
    def contribution_ignored(
        user_id: Optional[str],
        challenge_id: UUID,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_IGNORED,
            user_id=user_id,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Contribution ignored: challenge is {status}",
            details={
                "status": status,
            },
        )

    @staticmethod
    def contribution_rejected(
        user_id: Optional[str],
        challenge_id: UUID,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description="Contribution rejected",
            error_message=reason,
        )

    @staticmethod
    def achievement_unlocked(
        user_id: Optional[str],
        challenge_id: UUID,
        achievement_id: str,
        name: str,
        bonus_points: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACHIEVEMENT_UNLOCKED,
            user_id=user_id,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Achievement unlocked: {name}",
            details={
                "achievement_id": achievement_id,
                "bonus_points": bonus_points,
            },
        )

    @staticmethod
    def challenge_finished(
        user_id: Optional[str],
        challenge_id: UUID,
        status: str,
        current_amount: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_FINISHED,
            user_id=user_id,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge finished: {status}",
            details={
                "status": status,
                "current_amount": current_amount,
            },
        )

    @staticmethod
    def save_failed(
        entity_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Failed to save {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
