"""Notification adapter that records alerts in the structured log."""
from __future__ import annotations

from typing import Sequence

import structlog

from eco_compliance.application.interfaces import NotificationService

logger = structlog.get_logger(__name__)


class LoggingNotificationService(NotificationService):
    """Emits compliance alerts as log events for downstream alerting."""

    async def notify_blocked(
        self,
        application_name: str,
        environment: str,
        violations: Sequence[str],
        recipients: Sequence[str],
    ) -> None:
        logger.warning(
            "deployment_blocked_notification",
            application=application_name,
            environment=environment,
            violation_count=len(violations),
            violations=list(violations),
            recipients=list(recipients),
        )

    async def notify_critical_vulnerabilities(
        self,
        application_name: str,
        environment: str,
        critical_count: int,
        high_count: int,
        recipients: Sequence[str],
    ) -> None:
        logger.error(
            "critical_vulnerabilities_notification",
            application=application_name,
            environment=environment,
            critical_count=critical_count,
            high_count=high_count,
            recipients=list(recipients),
        )


__all__ = ["LoggingNotificationService"]
