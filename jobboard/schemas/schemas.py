"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal, Any
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    job_seeker = "JOB_SEEKER"
    employer = "EMPLOYER"
    admin = "ADMIN"


class JobStatus(str, Enum):
    draft = "DRAFT"
    published = "PUBLISHED"
    expired = "EXPIRED"
    closed = "CLOSED"
    paused = "PAUSED"


class RemoteType(str, Enum):
    onsite = "ONSITE"
    hybrid = "HYBRID"
    remote = "REMOTE"


class JobType(str, Enum):
    full_time = "FULL_TIME"
    part_time = "PART_TIME"
    contract = "CONTRACT"
    internship = "INTERNSHIP"
    freelance = "FREELANCE"


class ApplicationStatus(str, Enum):
    applied = "APPLIED"
    viewed = "VIEWED"
    shortlisted = "SHORTLISTED"
    interview = "INTERVIEW"
    offered = "OFFERED"
    hired = "HIRED"
    rejected = "REJECTED"
    withdrawn = "WITHDRAWN"


class ProfileVisibility(str, Enum):
    public = "PUBLIC"
    private = "PRIVATE"
    recruiters_only = "RECRUITERS_ONLY"


class CompanySize(str, Enum):
    startup = "STARTUP"
    small = "SMALL"
    medium = "MEDIUM"
    large = "LARGE"
    enterprise = "ENTERPRISE"


class SkillLevel(str, Enum):
    beginner = "BEGINNER"
    intermediate = "INTERMEDIATE"
    advanced = "ADVANCED"
    expert = "EXPERT"


class AlertFrequency(str, Enum):
    instant = "INSTANT"
    daily = "DAILY"
    weekly = "WEEKLY"


class PaymentStatus(str, Enum):
    pending = "PENDING"
    completed = "COMPLETED"
    failed = "FAILED"
    refunded = "REFUNDED"
    cancelled = "CANCELLED"


class PaymentType(str, Enum):
    job_posting = "JOB_POSTING"
    featured_job = "FEATURED_JOB"
    urgent_job = "URGENT_JOB"
    subscription = "SUBSCRIPTION"


class PlanType(str, Enum):
    basic = "BASIC"
    premium = "PREMIUM"


class SubscriptionStatus(str, Enum):
    active = "ACTIVE"
    cancelled = "CANCELLED"
    expired = "EXPIRED"
    pending = "PENDING"


class ConsentType(str, Enum):
    data_retention = "DATA_RETENTION"
    marketing = "MARKETING"
    job_alerts = "JOB_ALERTS"
    cookies = "COOKIES"
    analytics = "ANALYTICS"


class ConsentAction(str, Enum):
    granted = "GRANTED"
    revoked = "REVOKED"


# Statuses that count as an employer having responded
RESPONDED_STATUSES = {"SHORTLISTED", "INTERVIEW", "OFFERED", "HIRED", "REJECTED"}

# Applications that still block a job from recommendations
ACTIVE_APPLICATION_STATUSES = ("APPLIED", "VIEWED", "SHORTLISTED", "INTERVIEW", "OFFERED", "HIRED")


# ============================================================
# AUTH SCHEMAS
# ============================================================

class JobSeekerRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    location: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = None
    data_retention_consent: bool = False
    marketing_consent: bool = False
    job_alert_consent: bool = False

class EmployerRegister(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)
    contact_name: str = Field(..., min_length=1, max_length=200)
    contact_phone: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    size: Optional[CompanySize] = None
    description: Optional[str] = None
    data_retention_consent: bool = False
    marketing_consent: bool = False

class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: Optional[UserRole] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str

class UserResponse(BaseModel):
    user_id: int
    email: str
    name: Optional[str] = None
    role: str
    data_retention_consent: bool = False
    marketing_consent: bool = False
    job_alert_consent: bool = False
    last_login_at: Optional[datetime] = None
    created_at: datetime


# ============================================================
# JOB SEEKER SCHEMAS
# ============================================================

class JobSeekerUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    title: Optional[str] = None
    experience: Optional[int] = Field(None, ge=0, le=60)
    education: Optional[str] = None
    profile_visibility: Optional[ProfileVisibility] = None

class SkillResponse(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    level: Optional[str] = None

class JobSeekerResponse(BaseModel):
    id: int
    user_id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    location: str
    country: str
    bio: Optional[str] = None
    title: Optional[str] = None
    experience: Optional[int] = None
    education: Optional[str] = None
    cv_url: Optional[str] = None
    cv_file_name: Optional[str] = None
    cv_uploaded_at: Optional[datetime] = None
    profile_visibility: str
    skills: List[SkillResponse] = []
    created_at: datetime

class SkillAdd(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    level: SkillLevel
    category: Optional[str] = None

class CvUploadResponse(BaseModel):
    message: str
    cv_url: str
    file_name: str
    text_extracted: bool = False


# ============================================================
# EMPLOYER SCHEMAS
# ============================================================

class EmployerUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[CompanySize] = None
    logo: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None

class EmployerResponse(BaseModel):
    id: int
    user_id: int
    email: str
    company_name: str
    description: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    logo: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: str
    created_at: datetime

class CompanyUpdate(BaseModel):
    """Full replace: fields left out are cleared."""
    description: Optional[str] = None
    mission: Optional[str] = None
    values: Optional[str] = None
    benefits: Optional[str] = None
    linkedin: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    instagram: Optional[str] = None

class CompanyResponse(BaseModel):
    id: int
    employer_id: int
    description: Optional[str] = None
    mission: Optional[str] = None
    values: Optional[str] = None
    benefits: Optional[str] = None
    linkedin: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    instagram: Optional[str] = None
    updated_at: datetime


# ============================================================
# JOB SCHEMAS
# ============================================================

class JobCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    location: str = Field(..., min_length=1, max_length=200)
    remote: RemoteType = RemoteType.onsite
    type: JobType
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    salary_currency: str = "EUR"
    application_email: Optional[EmailStr] = None
    application_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    featured: bool = False
    urgent: bool = False
    status: JobStatus = JobStatus.draft
    skills: List[str] = []

class JobUpdate(BaseModel):
    action: Optional[Literal["publish", "pause", "close"]] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    location: Optional[str] = None
    remote: Optional[RemoteType] = None
    type: Optional[JobType] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    salary_currency: Optional[str] = None
    application_email: Optional[EmailStr] = None
    application_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    status: Optional[JobStatus] = None
    skills: Optional[List[str]] = None

class JobEmployerInfo(BaseModel):
    id: int
    company_name: str
    logo: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None

class JobResponse(BaseModel):
    id: int
    title: str
    description: str
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    location: str
    remote: str
    type: str
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: str
    application_email: Optional[str] = None
    application_url: Optional[str] = None
    status: str
    featured: bool
    urgent: bool
    expires_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    created_at: datetime
    employer: Optional[JobEmployerInfo] = None
    skills: List[str] = []
    application_count: int = 0

class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int
    page: int
    limit: int
    total_pages: int

class JobCreatedResponse(BaseModel):
    message: str
    job_id: int
    status: str


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class ApplyRequest(BaseModel):
    cover_letter: Optional[str] = None
    cv_url: Optional[str] = None

class GuestApplicationCreate(BaseModel):
    job_id: int
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    cover_letter: Optional[str] = None
    cv_url: Optional[str] = None

class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    message: Optional[str] = None

class EmployerApplicationUpdate(BaseModel):
    application_id: int
    status: Optional[ApplicationStatus] = None
    notes: Optional[str] = None

class ApplicationResponse(BaseModel):
    id: int
    job_id: int
    job_title: str
    company_name: str
    status: str
    cover_letter: Optional[str] = None
    cv_url: Optional[str] = None
    applied_at: datetime
    viewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


# ============================================================
# JOB ALERT SCHEMAS
# ============================================================

class JobAlertCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    location: Optional[str] = None
    industry: Optional[str] = None
    job_type: Optional[JobType] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    email_alerts: bool = True
    sms_alerts: bool = False
    frequency: AlertFrequency = AlertFrequency.daily

class JobAlertUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    location: Optional[str] = None
    industry: Optional[str] = None
    job_type: Optional[JobType] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    email_alerts: Optional[bool] = None
    sms_alerts: Optional[bool] = None
    frequency: Optional[AlertFrequency] = None
    active: Optional[bool] = None

class JobAlertResponse(BaseModel):
    id: int
    title: str
    location: Optional[str] = None
    industry: Optional[str] = None
    job_type: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    email_alerts: bool
    sms_alerts: bool
    frequency: str
    active: bool
    created_at: datetime


# ============================================================
# PAYMENT SCHEMAS
# ============================================================

class PaymentIntentCreate(BaseModel):
    payment_type: PaymentType
    job_id: Optional[int] = None
    plan_type: Optional[PlanType] = None
    success_url: str = Field(..., min_length=1)
    cancel_url: str = Field(..., min_length=1)

class PaymentIntentResponse(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    payment_id: int
    amount: int
    currency: str

class SubscriptionCreate(BaseModel):
    plan_id: str

class SubscriptionManage(BaseModel):
    action: Literal["upgrade", "downgrade", "cancel", "resume"]
    plan_id: Optional[PlanType] = None


# ============================================================
# GDPR SCHEMAS
# ============================================================

class ConsentUpdate(BaseModel):
    consent_type: ConsentType
    action: ConsentAction

class AccountDeletionRequest(BaseModel):
    confirm: bool
    reason: Optional[str] = None


# ============================================================
# ADMIN SCHEMAS
# ============================================================

class AdminUserAction(BaseModel):
    action: Literal["delete", "soft-delete", "restore"]

class AdminNotification(BaseModel):
    type: Literal["EMAIL", "SMS"]
    recipient: str = Field(..., min_length=1)
    subject: Optional[str] = None
    message: str = Field(..., min_length=1)


# ============================================================
# PUBLIC / USER SCHEMAS
# ============================================================

class NewsletterSubscribe(BaseModel):
    email: str
    name: Optional[str] = None
    preferences: Optional[dict] = None

class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    query: Optional[str] = None
    location: Optional[str] = None
    filters: dict = {}
    alert_enabled: bool = False
    alert_frequency: Optional[str] = None

class RecentSearchCreate(BaseModel):
    query: Optional[str] = None
    location: Optional[str] = None
    filters: Optional[dict] = None


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

class ErrorResponse(BaseModel):
    detail: Any
