"""Storage interface consumed by the classifier, broadcaster and API."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from hazardwatch.common.models import (
    ActivityItem,
    CitizenReport,
    CitizenReportCreate,
    DashboardData,
    Incident,
    IncidentCreate,
    IncidentUpdate,
    Notification,
    SocialMediaPost,
    SystemStats,
)


class StorageError(Exception):
    """Raised when the backing store cannot serve a request."""


class NotFoundError(StorageError):
    """Raised when a record with the requested id does not exist."""


class Storage(ABC):
    """CRUD and filtered queries over incidents, reports, posts and notifications.

    Listing methods return newest records first.
    """

    # Incidents
    @abstractmethod
    async def create_incident(self, incident: IncidentCreate) -> Incident:
        ...

    @abstractmethod
    async def get_incidents(
        self,
        severity: Optional[str] = None,
        status: Optional[str] = None,
        hazard_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Incident]:
        ...

    @abstractmethod
    async def get_incident_by_id(self, incident_id: str) -> Optional[Incident]:
        ...

    @abstractmethod
    async def update_incident(self, incident_id: str, updates: IncidentUpdate) -> Incident:
        ...

    # Citizen reports
    @abstractmethod
    async def create_citizen_report(self, report: CitizenReportCreate) -> CitizenReport:
        ...

    @abstractmethod
    async def get_citizen_reports(
        self,
        verified: Optional[bool] = None,
        hazard_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[CitizenReport]:
        ...

    @abstractmethod
    async def verify_citizen_report(self, report_id: str, verified_by: str) -> CitizenReport:
        ...

    # Social media posts
    @abstractmethod
    async def create_social_media_post(self, post: SocialMediaPost) -> SocialMediaPost:
        ...

    @abstractmethod
    async def get_social_media_posts(
        self,
        platform: Optional[str] = None,
        relevant: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[SocialMediaPost]:
        ...

    # Notifications
    @abstractmethod
    async def create_notification(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    async def get_user_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        ...

    @abstractmethod
    async def mark_notification_read(self, notification_id: str) -> None:
        ...

    # Aggregates
    @abstractmethod
    async def get_system_stats(self) -> SystemStats:
        ...

    @abstractmethod
    async def get_recent_activity(self, limit: int = 20) -> List[ActivityItem]:
        ...

    async def get_dashboard_data(self) -> DashboardData:
        """Latest incidents, reports and relevant posts plus current stats."""
        incidents, reports, posts, stats = await asyncio.gather(
            self.get_incidents(limit=10),
            self.get_citizen_reports(limit=10),
            self.get_social_media_posts(relevant=True, limit=10),
            self.get_system_stats(),
        )
        return DashboardData(
            incidents=incidents,
            recent_reports=reports,
            social_posts=posts,
            notifications=[],
            stats=stats,
        )


def merge_activity(
    incidents: List[Incident],
    reports: List[CitizenReport],
    posts: List[SocialMediaPost],
    limit: int,
) -> List[ActivityItem]:
    """Map records to activity items, newest first, at most ``limit``."""
    activities: List[ActivityItem] = []

    for incident in incidents:
        activities.append(ActivityItem(
            id=incident.id,
            type="incident",
            title=incident.title,
            severity=incident.severity,
            timestamp=incident.created_at,
            location=incident.location,
        ))

    for report in reports:
        activities.append(ActivityItem(
            id=report.id,
            type="report",
            title=f"{report.hazard_type.value} reported in {report.location}",
            severity=report.severity,
            timestamp=report.created_at,
            location=report.location,
        ))

    for post in posts:
        activities.append(ActivityItem(
            id=post.id,
            type="social",
            title=f"{post.platform} activity detected",
            severity=post.severity or "low",
            timestamp=post.processed_at,
            location=post.location,
        ))

    activities.sort(key=lambda item: item.timestamp, reverse=True)
    return activities[:limit]
