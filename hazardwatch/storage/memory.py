"""In-process storage backend for development and tests."""
from __future__ import annotations

from typing import List, Optional, TypeVar

from hazardwatch.common.logger import setup_logger
from hazardwatch.common.models import (
    ActivityItem,
    CitizenReport,
    CitizenReportCreate,
    Incident,
    IncidentCreate,
    IncidentStatus,
    IncidentUpdate,
    Notification,
    Severity,
    SocialMediaPost,
    SystemStats,
)
from hazardwatch.common.utils import now_utc, start_of_day
from hazardwatch.storage.base import NotFoundError, Storage, merge_activity

logger = setup_logger(__name__)

T = TypeVar("T")

ACTIVE_STATUSES = (IncidentStatus.INVESTIGATING, IncidentStatus.VERIFIED)


def _page(items: List[T], limit: Optional[int], offset: Optional[int]) -> List[T]:
    start = offset or 0
    if limit:
        return items[start:start + limit]
    return items[start:]


class MemoryStorage(Storage):
    """Keeps every record in a list; ordering is by timestamp at query time."""

    def __init__(self):
        self.incidents: List[Incident] = []
        self.reports: List[CitizenReport] = []
        self.posts: List[SocialMediaPost] = []
        self.notifications: List[Notification] = []
        logger.info("Initialized in-memory storage")

    # Incidents
    async def create_incident(self, incident: IncidentCreate) -> Incident:
        record = Incident(**incident.model_dump())
        self.incidents.append(record)
        return record

    async def get_incidents(self, severity=None, status=None, hazard_type=None, limit=None, offset=None):
        items = [
            i for i in self.incidents
            if (not severity or i.severity == severity)
            and (not status or i.status == status)
            and (not hazard_type or i.hazard_type == hazard_type)
        ]
        items.sort(key=lambda i: i.created_at, reverse=True)
        return _page(items, limit, offset)

    async def get_incident_by_id(self, incident_id: str) -> Optional[Incident]:
        for incident in self.incidents:
            if incident.id == incident_id:
                return incident
        return None

    async def update_incident(self, incident_id: str, updates: IncidentUpdate) -> Incident:
        for index, incident in enumerate(self.incidents):
            if incident.id == incident_id:
                changes = updates.model_dump(exclude_unset=True)
                changes["updated_at"] = now_utc()
                if changes.get("status") == IncidentStatus.RESOLVED and not incident.resolved_at:
                    changes["resolved_at"] = changes["updated_at"]
                updated = incident.model_copy(update=changes)
                self.incidents[index] = updated
                return updated
        raise NotFoundError(f"Incident {incident_id} not found")

    # Citizen reports
    async def create_citizen_report(self, report: CitizenReportCreate) -> CitizenReport:
        record = CitizenReport(**report.model_dump())
        self.reports.append(record)
        return record

    async def get_citizen_reports(self, verified=None, hazard_type=None, limit=None, offset=None):
        items = [
            r for r in self.reports
            if (verified is None or r.is_verified == verified)
            and (not hazard_type or r.hazard_type == hazard_type)
        ]
        items.sort(key=lambda r: r.created_at, reverse=True)
        return _page(items, limit, offset)

    async def verify_citizen_report(self, report_id: str, verified_by: str) -> CitizenReport:
        for index, report in enumerate(self.reports):
            if report.id == report_id:
                updated = report.model_copy(update={
                    "is_verified": True,
                    "verified_by": verified_by,
                    "updated_at": now_utc(),
                })
                self.reports[index] = updated
                return updated
        raise NotFoundError(f"Citizen report {report_id} not found")

    # Social media posts
    async def create_social_media_post(self, post: SocialMediaPost) -> SocialMediaPost:
        self.posts.append(post)
        return post

    async def get_social_media_posts(self, platform=None, relevant=None, limit=None, offset=None):
        items = [
            p for p in self.posts
            if (not platform or p.platform == platform)
            and (relevant is None or p.is_relevant == relevant)
        ]
        items.sort(key=lambda p: p.processed_at, reverse=True)
        return _page(items, limit, offset)

    # Notifications
    async def create_notification(self, notification: Notification) -> Notification:
        self.notifications.append(notification)
        return notification

    async def get_user_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        items = [
            n for n in self.notifications
            if n.user_id == user_id and (not unread_only or not n.is_read)
        ]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items

    async def mark_notification_read(self, notification_id: str) -> None:
        for index, notification in enumerate(self.notifications):
            if notification.id == notification_id:
                self.notifications[index] = notification.model_copy(
                    update={"is_read": True, "read_at": now_utc()}
                )
                return
        raise NotFoundError(f"Notification {notification_id} not found")

    # Aggregates
    async def get_system_stats(self) -> SystemStats:
        today = start_of_day(now_utc())
        return SystemStats(
            active_incidents=sum(1 for i in self.incidents if i.status in ACTIVE_STATUSES),
            today_reports=sum(1 for r in self.reports if r.created_at >= today),
            social_mentions=sum(1 for p in self.posts if p.is_relevant and p.processed_at >= today),
            critical_incidents=sum(1 for i in self.incidents if i.severity == Severity.CRITICAL),
            moderate_incidents=sum(1 for i in self.incidents if i.severity == Severity.MODERATE),
        )

    async def get_recent_activity(self, limit: int = 20) -> List[ActivityItem]:
        incidents = await self.get_incidents(limit=limit)
        reports = await self.get_citizen_reports(limit=limit)
        posts = await self.get_social_media_posts(relevant=True, limit=limit)
        return merge_activity(incidents, reports, posts, limit)
