"""Elasticsearch-backed storage: one index per entity."""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Dict, List, Optional

from hazardwatch.common.es_client import ESClient
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
    SocialMediaPost,
    SystemStats,
)
from hazardwatch.common.utils import now_utc, start_of_day
from hazardwatch.storage.base import NotFoundError, Storage, merge_activity

logger = setup_logger(__name__)

INCIDENTS = "incidents"
REPORTS = "reports"
POSTS = "social-posts"
NOTIFICATIONS = "notifications"

# index.max_result_window default; caps from + size
MAX_RESULT_WINDOW = 10000


def _filters(**terms: Any) -> Dict[str, Any]:
    """Bool query with a term filter for every non-None value."""
    clauses = [{"term": {field: value}} for field, value in terms.items() if value is not None]
    if not clauses:
        return {"match_all": {}}
    return {"bool": {"filter": clauses}}


class ElasticsearchStorage(Storage):
    """Storage on top of ESClient.

    The client is synchronous, so every call runs in the default executor
    to keep the event loop free for realtime connections.
    """

    def __init__(self, es: Optional[ESClient] = None):
        self.es = es or ESClient()
        logger.info("Initialized Elasticsearch storage")

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def _put(self, entity: str, doc_id: str, model) -> None:
        await self._run(self.es.index_document, self.es.index_name(entity), doc_id, model.model_dump(mode="json"))

    async def _search(self, entity: str, query, sort_field: str, limit: Optional[int], offset: Optional[int]):
        return await self._run(
            self.es.search,
            query,
            self.es.index_name(entity),
            size=limit or max(MAX_RESULT_WINDOW - (offset or 0), 0),
            from_=offset or 0,
            sort=[{sort_field: {"order": "desc"}}],
        )

    async def _count(self, entity: str, query) -> int:
        return await self._run(self.es.count, query, self.es.index_name(entity))

    async def _update(self, entity: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._run(self.es.update_document, self.es.index_name(entity), doc_id, fields)

    # Incidents
    async def create_incident(self, incident: IncidentCreate) -> Incident:
        record = Incident(**incident.model_dump())
        await self._put(INCIDENTS, record.id, record)
        return record

    async def get_incidents(self, severity=None, status=None, hazard_type=None, limit=None, offset=None):
        query = _filters(severity=severity, status=status, hazard_type=hazard_type)
        docs = await self._search(INCIDENTS, query, "created_at", limit, offset)
        return [Incident(**doc) for doc in docs]

    async def get_incident_by_id(self, incident_id: str) -> Optional[Incident]:
        doc = await self._run(self.es.get_document, self.es.index_name(INCIDENTS), incident_id)
        return Incident(**doc) if doc else None

    async def update_incident(self, incident_id: str, updates: IncidentUpdate) -> Incident:
        fields = updates.model_dump(mode="json", exclude_unset=True)
        fields["updated_at"] = now_utc().isoformat()
        if fields.get("status") == IncidentStatus.RESOLVED.value:
            current = await self._run(self.es.get_document, self.es.index_name(INCIDENTS), incident_id)
            if current is None:
                raise NotFoundError(f"Incident {incident_id} not found")
            # The first resolution time is kept
            if not current.get("resolved_at"):
                fields["resolved_at"] = fields["updated_at"]
        doc = await self._update(INCIDENTS, incident_id, fields)
        return Incident(**doc)

    # Citizen reports
    async def create_citizen_report(self, report: CitizenReportCreate) -> CitizenReport:
        record = CitizenReport(**report.model_dump())
        await self._put(REPORTS, record.id, record)
        return record

    async def get_citizen_reports(self, verified=None, hazard_type=None, limit=None, offset=None):
        query = _filters(is_verified=verified, hazard_type=hazard_type)
        docs = await self._search(REPORTS, query, "created_at", limit, offset)
        return [CitizenReport(**doc) for doc in docs]

    async def verify_citizen_report(self, report_id: str, verified_by: str) -> CitizenReport:
        doc = await self._update(REPORTS, report_id, {
            "is_verified": True,
            "verified_by": verified_by,
            "updated_at": now_utc().isoformat(),
        })
        return CitizenReport(**doc)

    # Social media posts
    async def create_social_media_post(self, post: SocialMediaPost) -> SocialMediaPost:
        await self._put(POSTS, post.id, post)
        return post

    async def get_social_media_posts(self, platform=None, relevant=None, limit=None, offset=None):
        query = _filters(platform=platform, is_relevant=relevant)
        docs = await self._search(POSTS, query, "processed_at", limit, offset)
        return [SocialMediaPost(**doc) for doc in docs]

    # Notifications
    async def create_notification(self, notification: Notification) -> Notification:
        await self._put(NOTIFICATIONS, notification.id, notification)
        return notification

    async def get_user_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        query = _filters(user_id=user_id, is_read=False if unread_only else None)
        docs = await self._search(NOTIFICATIONS, query, "created_at", None, None)
        return [Notification(**doc) for doc in docs]

    async def mark_notification_read(self, notification_id: str) -> None:
        await self._update(NOTIFICATIONS, notification_id, {
            "is_read": True,
            "read_at": now_utc().isoformat(),
        })

    # Aggregates
    async def get_system_stats(self) -> SystemStats:
        today = start_of_day(now_utc()).isoformat()
        active, reports, mentions, critical, moderate = await asyncio.gather(
            self._count(INCIDENTS, {"terms": {"status": [
                IncidentStatus.INVESTIGATING.value, IncidentStatus.VERIFIED.value,
            ]}}),
            self._count(REPORTS, {"range": {"created_at": {"gte": today}}}),
            self._count(POSTS, {"bool": {"filter": [
                {"term": {"is_relevant": True}},
                {"range": {"processed_at": {"gte": today}}},
            ]}}),
            self._count(INCIDENTS, {"term": {"severity": "critical"}}),
            self._count(INCIDENTS, {"term": {"severity": "moderate"}}),
        )
        return SystemStats(
            active_incidents=active,
            today_reports=reports,
            social_mentions=mentions,
            critical_incidents=critical,
            moderate_incidents=moderate,
        )

    async def get_recent_activity(self, limit: int = 20) -> List[ActivityItem]:
        incidents, reports, posts = await asyncio.gather(
            self.get_incidents(limit=limit),
            self.get_citizen_reports(limit=limit),
            self.get_social_media_posts(relevant=True, limit=limit),
        )
        return merge_activity(incidents, reports, posts, limit)
