"""Data models for hazard reports, social posts and realtime payloads."""
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Union
from pydantic import BaseModel, ConfigDict, Field
from hazardwatch.common.utils import generate_id, now_utc


class HazardType(str, Enum):
    TSUNAMI = "tsunami"
    STORM_SURGE = "storm_surge"
    HIGH_WAVES = "high_waves"
    UNUSUAL_TIDES = "unusual_tides"
    COASTAL_FLOODING = "coastal_flooding"
    SWELL_SURGE = "swell_surge"
    COASTAL_CURRENT = "coastal_current"
    OTHER = "other"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class Sentiment(str, Enum):
    URGENT = "urgent"
    CONCERNED = "concerned"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


class IncidentStatus(str, Enum):
    REPORTED = "reported"
    INVESTIGATING = "investigating"
    VERIFIED = "verified"
    RESOLVED = "resolved"
    FALSE_ALARM = "false_alarm"


class ActivityType(str, Enum):
    INCIDENT = "incident"
    REPORT = "report"
    SOCIAL = "social"


MetadataValue = Union[str, int, float, bool, List[str], None]


class PostAssessment(BaseModel):
    """Result of classifying one social post. Computed once, never mutated."""
    model_config = ConfigDict(frozen=True)

    is_relevant: bool = False
    hazard_type: Optional[HazardType] = None
    severity: Severity = Severity.LOW
    sentiment: Sentiment = Sentiment.NEUTRAL
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    location: Optional[str] = None
    matched_keywords: List[str] = []


class Engagement(BaseModel):
    """Engagement counters reported by the source platform."""
    likes: Optional[int] = None
    shares: Optional[int] = None
    comments: Optional[int] = None
    retweets: Optional[int] = None


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class RawSocialPost(BaseModel):
    """Social post as delivered by an ingestion source."""
    platform: str
    post_id: str
    username: str = "unknown"
    content: str
    engagement: Engagement = Field(default_factory=Engagement)
    original_post_date: Optional[datetime] = None


class SocialMediaPost(BaseModel):
    """Persisted social post with its assessment merged in."""
    id: str = Field(default_factory=generate_id)
    platform: str
    post_id: str
    username: str
    content: str
    sentiment: Optional[Sentiment] = None
    hazard_type: Optional[HazardType] = None
    severity: Optional[Severity] = None
    confidence: Optional[float] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_relevant: bool = True
    matched_keywords: List[str] = []
    engagement: Engagement = Field(default_factory=Engagement)
    engagement_score: int = 0
    original_post_date: Optional[datetime] = None
    processed_at: datetime = Field(default_factory=now_utc)
    created_at: datetime = Field(default_factory=now_utc)


class IncidentCreate(BaseModel):
    title: str
    description: Optional[str] = None
    hazard_type: HazardType
    severity: Severity
    status: IncidentStatus = IncidentStatus.REPORTED
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location: str
    reported_by: Optional[str] = None
    assigned_to: Optional[str] = None
    is_emergency: bool = False
    media_urls: List[str] = []


class IncidentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    hazard_type: Optional[HazardType] = None
    severity: Optional[Severity] = None
    status: Optional[IncidentStatus] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    location: Optional[str] = None
    assigned_to: Optional[str] = None
    is_emergency: Optional[bool] = None
    media_urls: Optional[List[str]] = None


class Incident(IncidentCreate):
    id: str = Field(default_factory=generate_id)
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class CitizenReportCreate(BaseModel):
    incident_id: Optional[str] = None
    reporter_id: Optional[str] = None
    hazard_type: HazardType
    severity: Severity
    description: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location: str
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    media_urls: List[str] = []
    is_anonymous: bool = True


class CitizenReport(CitizenReportCreate):
    id: str = Field(default_factory=generate_id)
    is_verified: bool = False
    verified_by: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class AffectedArea(BaseModel):
    latitude: float
    longitude: float
    radius_km: float = Field(..., gt=0)


class Notification(BaseModel):
    """Notification record; ``user_id`` None means broadcast."""
    id: str = Field(default_factory=generate_id)
    user_id: Optional[str] = None
    type: str
    title: str
    message: str
    severity: Severity
    related_incident_id: Optional[str] = None
    is_read: bool = False
    is_emergency: bool = False
    channels: List[str] = ["web"]
    affected_area: Optional[AffectedArea] = None
    metadata: Dict[str, MetadataValue] = {}
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=now_utc)


class EmergencyAlertRequest(BaseModel):
    title: str = "Emergency alert"
    message: str = Field(..., min_length=1)
    severity: Severity = Severity.CRITICAL
    location: Optional[str] = None
    incident_id: Optional[str] = None
    affected_area: Optional[AffectedArea] = None


class SystemStats(BaseModel):
    active_incidents: int = 0
    today_reports: int = 0
    social_mentions: int = 0
    critical_incidents: int = 0
    moderate_incidents: int = 0


class ActivityItem(BaseModel):
    id: str
    type: ActivityType
    title: str
    severity: Severity
    timestamp: datetime
    location: Optional[str] = None


class DashboardData(BaseModel):
    incidents: List[Incident] = []
    recent_reports: List[CitizenReport] = []
    social_posts: List[SocialMediaPost] = []
    notifications: List[Notification] = []
    stats: SystemStats = Field(default_factory=SystemStats)
