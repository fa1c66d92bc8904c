"""Domain enums."""
from __future__ import annotations

from enum import Enum


class FailurePoint(str, Enum):
    """Why a probe did not succeed."""

    CONNECTION = "connection"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ExecutionMode(str, Enum):
    """Which backend the registry routes operations through."""

    API = "api"
    FALLBACK = "fallback"
    UNKNOWN = "unknown"


class HealthStatus(str, Enum):
    """Per-webhook health derived from delivery counters."""

    INACTIVE = "inactive"
    NO_DELIVERIES = "no_deliveries"
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class StatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"
