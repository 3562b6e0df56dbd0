"""Dashboard API: incidents, citizen reports, social posts, notifications and live updates."""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Response, WebSocket, WebSocketDisconnect
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from hazardwatch.classifier.processor import SocialPostProcessor
from hazardwatch.common.config import settings
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import errors_total
from hazardwatch.common.models import (
    ActivityItem,
    CitizenReport,
    CitizenReportCreate,
    DashboardData,
    EmergencyAlertRequest,
    HazardType,
    Incident,
    IncidentCreate,
    IncidentStatus,
    IncidentUpdate,
    Notification,
    Severity,
    SocialMediaPost,
    SystemStats,
)
from hazardwatch.common.utils import now_utc
from hazardwatch.notifications.service import NotificationService
from hazardwatch.realtime.broadcaster import RealtimeBroadcaster
from hazardwatch.storage import NotFoundError, Storage, create_storage

logger = setup_logger(__name__)


def verify_token(authorization: Optional[str] = Header(None)):
    """Verify API token."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    token = authorization.replace("Bearer ", "")
    if token != settings.API_TOKEN:
        raise HTTPException(status_code=403, detail="Invalid token")

    return token


def _fail(error_type: str, e: Exception) -> HTTPException:
    logger.error(f"Error handling {error_type}: {e}")
    errors_total.labels(component="api", error_type=error_type).inc()
    return HTTPException(status_code=500, detail=str(e))


def create_app(storage: Optional[Storage] = None, redis=None) -> FastAPI:
    """Build the API around one storage backend and one broadcaster."""
    storage = storage or create_storage()
    if redis is None and settings.REDIS_ENABLED:
        from hazardwatch.common.redis_client import RedisClient
        redis = RedisClient()

    broadcaster = RealtimeBroadcaster(storage)
    notifications = NotificationService(storage, broadcaster)
    processor = SocialPostProcessor(storage, redis=redis, notifications=notifications)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        broadcaster.start()
        try:
            yield
        finally:
            await broadcaster.stop()

    app = FastAPI(title="HazardWatch API", lifespan=lifespan)
    app.state.storage = storage
    app.state.broadcaster = broadcaster
    app.state.notifications = notifications
    app.state.processor = processor

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        health = {
            "status": "healthy",
            "storage": settings.STORAGE_BACKEND,
            "realtime_clients": broadcaster.get_connected_count(),
            "timestamp": now_utc().isoformat(),
        }
        if redis is not None:
            redis_healthy = redis.health_check()
            health["redis"] = "healthy" if redis_healthy else "unhealthy"
            health["ingest_queue"] = redis.queue_length(settings.INGEST_QUEUE)
            if not redis_healthy:
                health["status"] = "degraded"
        return health

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Dashboard

    @app.get("/dashboard", response_model=DashboardData)
    async def get_dashboard():
        try:
            return await storage.get_dashboard_data()
        except Exception as e:
            raise _fail("dashboard_error", e)

    @app.get("/dashboard/stats", response_model=SystemStats)
    async def get_stats():
        try:
            return await storage.get_system_stats()
        except Exception as e:
            raise _fail("stats_error", e)

    @app.get("/activity", response_model=List[ActivityItem])
    async def get_activity(limit: int = Query(20, ge=1, le=100)):
        try:
            return await storage.get_recent_activity(limit)
        except Exception as e:
            raise _fail("activity_error", e)

    # Incidents

    @app.get("/incidents", response_model=List[Incident])
    async def list_incidents(
        severity: Optional[Severity] = None,
        status: Optional[IncidentStatus] = None,
        hazard_type: Optional[HazardType] = None,
        limit: Optional[int] = Query(None, ge=1, le=500),
        offset: Optional[int] = Query(None, ge=0),
    ):
        try:
            return await storage.get_incidents(
                severity=severity, status=status, hazard_type=hazard_type, limit=limit, offset=offset
            )
        except Exception as e:
            raise _fail("incidents_error", e)

    @app.post("/incidents", response_model=Incident, status_code=201)
    async def create_incident(incident: IncidentCreate, authorization: Optional[str] = Header(None)):
        verify_token(authorization)
        try:
            created = await storage.create_incident(incident)
        except Exception as e:
            raise _fail("create_incident_error", e)
        logger.info(f"Incident created: {created.id} ({created.hazard_type.value}, {created.severity.value})")
        return created

    @app.get("/incidents/{incident_id}", response_model=Incident)
    async def get_incident(incident_id: str):
        try:
            incident = await storage.get_incident_by_id(incident_id)
        except Exception as e:
            raise _fail("incident_error", e)
        if incident is None:
            raise HTTPException(status_code=404, detail="Incident not found")
        return incident

    @app.put("/incidents/{incident_id}", response_model=Incident)
    async def update_incident(
        incident_id: str,
        updates: IncidentUpdate,
        authorization: Optional[str] = Header(None),
    ):
        verify_token(authorization)
        try:
            return await storage.update_incident(incident_id, updates)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Incident not found")
        except Exception as e:
            raise _fail("update_incident_error", e)

    # Citizen reports

    @app.get("/reports", response_model=List[CitizenReport])
    async def list_reports(
        verified: Optional[bool] = None,
        hazard_type: Optional[HazardType] = None,
        limit: Optional[int] = Query(None, ge=1, le=500),
        offset: Optional[int] = Query(None, ge=0),
    ):
        try:
            return await storage.get_citizen_reports(
                verified=verified, hazard_type=hazard_type, limit=limit, offset=offset
            )
        except Exception as e:
            raise _fail("reports_error", e)

    @app.post("/reports", response_model=CitizenReport, status_code=201)
    async def create_report(report: CitizenReportCreate):
        try:
            created = await storage.create_citizen_report(report)
        except Exception as e:
            raise _fail("create_report_error", e)
        logger.info(f"Citizen report created: {created.id} in {created.location}")
        return created

    @app.put("/reports/{report_id}/verify", response_model=CitizenReport)
    async def verify_report(
        report_id: str,
        authorization: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ):
        verify_token(authorization)
        try:
            return await storage.verify_citizen_report(report_id, x_user_id or "staff")
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Report not found")
        except Exception as e:
            raise _fail("verify_report_error", e)

    # Social media

    @app.get("/social", response_model=List[SocialMediaPost])
    async def list_social_posts(
        platform: Optional[str] = None,
        relevant: Optional[bool] = None,
        limit: Optional[int] = Query(None, ge=1, le=500),
        offset: Optional[int] = Query(None, ge=0),
    ):
        try:
            return await storage.get_social_media_posts(
                platform=platform, relevant=relevant, limit=limit, offset=offset
            )
        except Exception as e:
            raise _fail("social_error", e)

    @app.post("/social", response_model=SocialMediaPost, status_code=201)
    async def ingest_social_post(raw_post: Dict[str, Any], authorization: Optional[str] = Header(None)):
        verify_token(authorization)
        try:
            post = await processor.ingest(raw_post)
        except Exception as e:
            raise _fail("ingest_error", e)
        if post is None:
            raise HTTPException(status_code=422, detail="Post rejected: invalid or duplicate")
        return post

    # Notifications

    @app.get("/notifications", response_model=List[Notification])
    async def list_notifications(
        user_id: str = Query(...),
        unread: bool = False,
        authorization: Optional[str] = Header(None),
    ):
        verify_token(authorization)
        try:
            return await storage.get_user_notifications(user_id, unread_only=unread)
        except Exception as e:
            raise _fail("notifications_error", e)

    @app.put("/notifications/{notification_id}/read")
    async def mark_notification_read(notification_id: str, authorization: Optional[str] = Header(None)):
        verify_token(authorization)
        try:
            await storage.mark_notification_read(notification_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Notification not found")
        except Exception as e:
            raise _fail("notification_read_error", e)
        return {"success": True}

    @app.post("/emergency-alert")
    async def emergency_alert(alert: EmergencyAlertRequest, authorization: Optional[str] = Header(None)):
        verify_token(authorization)
        try:
            return await notifications.send_emergency_alert(
                title=alert.title,
                message=alert.message,
                severity=alert.severity,
                location=alert.location,
                incident_id=alert.incident_id,
                affected_area=alert.affected_area,
            )
        except Exception as e:
            raise _fail("emergency_alert_error", e)

    # Realtime

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        connection_id = await broadcaster.connect(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                if not broadcaster.is_connected(connection_id):
                    # Dropped after a failed send
                    await websocket.close(code=1011)
                    break
                await broadcaster.handle_message(connection_id, raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(f"Realtime connection {connection_id} closed with error: {e}")
        finally:
            broadcaster.disconnect(connection_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
