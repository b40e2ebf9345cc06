"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Administrator-authored rules (SLA policies, assignment/escalation rules,
approval forms) are NOT settings: they live in the rulebook YAML file and
are loaded by ``servicedesk.rulebook``.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ========== Constants ==========

class TicketType(str, Enum):
    """Ticket types accepted at intake."""
    INCIDENT = "incident"
    SERVICE_REQUEST = "service_request"
    INQUIRY = "inquiry"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    NEW = "new"
    NEED_APPROVAL = "need_approval"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"


class Priority(str, Enum):
    """Ticket priority levels. Drives the SLA deadline."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Urgency(str, Enum):
    """Ticket urgency levels (independent of priority)."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ApprovalStatus(str, Enum):
    """Ticket-level approval status."""
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRequestStatus(str, Enum):
    """Status of a single per-stage approval request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEED_MORE_INFO = "need_more_info"
    SKIPPED = "skipped"


class ApprovalDecision(str, Enum):
    """Responses an approver can give."""
    APPROVE = "approve"
    REJECT = "reject"
    NEED_MORE_INFO = "need_more_info"


class ApproverType(str, Enum):
    """How an approval stage names its approver."""
    USER = "user"
    ROLE = "role"
    TEAM = "team"


class UserRole(str, Enum):
    """Directory roles."""
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class NotificationType(str, Enum):
    """Notification kinds written to the outbox."""
    TICKET_CREATED = "ticket_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    PRIORITY_CHANGED = "priority_changed"
    ESCALATION = "escalation"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    APPROVAL_MORE_INFO_NEEDED = "approval_more_info_needed"


class EscalationFireMode(str, Enum):
    """How often a still-matching escalation rule fires."""
    EVERY_SCAN = "every_scan"
    ONCE_PER_BREACH = "once_per_breach"


class UnresolvableApproverPolicy(str, Enum):
    """What the approval workflow does when a stage has no approver."""
    STALL = "stall"
    SKIP = "skip"


class SystemActor(str, Enum):
    """Identities recorded in history for automated changes."""
    SCHEDULER = "system:scheduler"
    APPROVAL = "system:approval"
    INTAKE = "system:intake"


# ========== Lists for validation ==========

VALID_PRIORITIES = [p.value for p in Priority]
VALID_STATUSES = [s.value for s in TicketStatus]
VALID_TICKET_TYPES = [t.value for t in TicketType]

# Counted as load by round robin
CLOSED_FOR_LOAD_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]

# Skipped by the escalation scanner
TERMINAL_SCAN_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED, TicketStatus.REJECTED]

RESOLVED_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="servicedesk-engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/servicedesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Rulebook ==========
    rulebook_path: Path = Field(
        default=Path("rulebook.yaml"),
        description="Path to the rulebook YAML file (SLA policies, rules, approval forms)"
    )

    # ========== Ticket Lifecycle ==========
    enforce_status_transitions: bool = Field(
        default=True,
        description="Reject user status changes outside the allowed transition table"
    )
    unresolvable_approver_policy: UnresolvableApproverPolicy = Field(
        default=UnresolvableApproverPolicy.STALL,
        description="stall: keep a pending request with no approver; skip: advance past the stage"
    )

    # ========== Escalation Scanner ==========
    escalation_scan_interval_seconds: int = Field(
        default=300,
        description="Seconds between escalation scans",
        ge=10
    )
    escalation_scan_concurrency: int = Field(
        default=4,
        description="Tickets processed in parallel during a scan",
        ge=1,
        le=64
    )
    escalation_fire_mode: EscalationFireMode = Field(
        default=EscalationFireMode.EVERY_SCAN,
        description="every_scan: fire while conditions hold; once_per_breach: once per ticket deadline"
    )

    # ========== Notification Delivery ==========
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook that receives queued notifications"
    )
    notification_webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for webhook calls",
        ge=0.1,
        le=30
    )
    notification_delivery_interval_seconds: int = Field(
        default=30,
        description="Seconds between notification outbox flushes",
        ge=5
    )
    notification_delivery_batch_size: int = Field(
        default=100,
        description="Notifications delivered per flush",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
