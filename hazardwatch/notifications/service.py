"""Notification service: persists notifications and relays them to live clients."""
from typing import Any, Dict, List, Optional

from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import errors_total, notifications_created_total
from hazardwatch.common.models import AffectedArea, Notification, Severity
from hazardwatch.common.utils import now_ms, now_utc
from hazardwatch.realtime.broadcaster import RealtimeBroadcaster
from hazardwatch.storage.base import Storage

logger = setup_logger(__name__)

NOTIFICATIONS_CHANNEL = "notifications"


class NotificationService:
    """Creates notification records and pushes them over the broadcaster.

    External delivery channels (SMS, email, push) are recorded on the
    notification but not dispatched.
    """

    def __init__(self, storage: Storage, broadcaster: Optional[RealtimeBroadcaster] = None):
        self.storage = storage
        self.broadcaster = broadcaster

    async def send_notification(self, notification: Notification) -> Notification:
        """Persist a notification and relay it to its user or channel."""
        try:
            notification = notification.model_copy(update={"sent_at": now_utc()})
            created = await self.storage.create_notification(notification)
        except Exception as e:
            logger.error(f"Failed to send notification: {e}")
            errors_total.labels(component="notifications", error_type="create").inc()
            raise

        notifications_created_total.labels(type=created.type).inc()
        logger.info(f"Notification sent: id={created.id} type={created.type} severity={created.severity.value}")

        if self.broadcaster is not None:
            message = {"type": "notification", "data": created}
            if created.user_id:
                await self.broadcaster.broadcast_to_user(created.user_id, message)
            else:
                await self.broadcaster.broadcast(message, NOTIFICATIONS_CHANNEL)

        return created

    async def send_emergency_alert(
        self,
        title: str,
        message: str,
        severity: Severity = Severity.CRITICAL,
        location: Optional[str] = None,
        incident_id: Optional[str] = None,
        affected_area: Optional[AffectedArea] = None,
    ) -> Dict[str, Any]:
        """Record a broadcast emergency alert and push it to every live client."""
        timestamp = now_ms()
        alert_id = f"emergency-{timestamp}"

        notification = Notification(
            user_id=None,
            type="emergency_alert",
            title=title,
            message=message,
            severity=severity,
            related_incident_id=incident_id,
            is_emergency=True,
            channels=["web", "sms", "email", "push"],
            affected_area=affected_area,
            metadata={
                "alert_id": alert_id,
                "location": location,
                "broadcast_type": "emergency",
                "urgency": "immediate",
            },
            sent_at=now_utc(),
        )

        try:
            await self.storage.create_notification(notification)
        except Exception as e:
            logger.error(f"Failed to send emergency alert: {e}")
            errors_total.labels(component="notifications", error_type="emergency_alert").inc()
            raise
        notifications_created_total.labels(type="emergency_alert").inc()

        delivered = 0
        if self.broadcaster is not None:
            delivered = await self.broadcaster.broadcast({
                "type": "emergency_alert",
                "alert_id": alert_id,
                "title": title,
                "message": message,
                "severity": severity,
                "location": location,
                "affected_area": affected_area,
                "timestamp": timestamp,
            })

        logger.warning(f"Emergency alert {alert_id} broadcast to {delivered} clients: {title}")
        return {"success": True, "alert_id": alert_id}

    async def send_incident_update(
        self,
        incident_id: str,
        title: str,
        message: str,
        severity: Severity,
        affected_users: Optional[List[str]] = None,
    ) -> List[Notification]:
        """Notify each affected user, or everyone when no users are given."""
        is_emergency = Severity(severity) == Severity.CRITICAL

        if affected_users:
            notifications = [
                Notification(
                    user_id=user_id,
                    type="incident_update",
                    title=title,
                    message=message,
                    severity=severity,
                    related_incident_id=incident_id,
                    is_emergency=is_emergency,
                    channels=["web", "email"],
                    metadata={"update_type": "status_change"},
                )
                for user_id in affected_users
            ]
        else:
            notifications = [
                Notification(
                    user_id=None,
                    type="incident_update",
                    title=title,
                    message=message,
                    severity=severity,
                    related_incident_id=incident_id,
                    is_emergency=is_emergency,
                    metadata={"update_type": "broadcast"},
                )
            ]

        return [await self.send_notification(n) for n in notifications]

    async def send_social_media_alert(
        self,
        platform: str,
        keywords: List[str],
        post_count: int,
        severity: Severity,
        location: Optional[str] = None,
    ) -> Notification:
        """Broadcast a spike of hazard-related posts on one platform."""
        text = f"{post_count} posts detected on {platform} containing keywords: {', '.join(keywords)}"
        if location:
            text += f" in {location}"

        return await self.send_notification(Notification(
            user_id=None,
            type="social_media_spike",
            title="Social Media Activity Spike Detected",
            message=text,
            severity=severity,
            metadata={
                "platform": platform,
                "keywords": list(keywords),
                "post_count": post_count,
                "location": location,
            },
        ))
