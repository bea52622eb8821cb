"""
Request schemas for the Business Admin API

Each group of Pydantic models validates the input for one MongoDB collection:

- admins           → Signup / AdminCreate / AdminUpdate / ProfileUpdate
- contactmessages  → ContactCreate / ContactUpdate / NoteCreate
- demorequests     → DemoCreate / DemoUpdate / NoteCreate
- clients          → ClientCreate / ClientUpdate and the appenders
- onboardings      → OnboardingPayload and the per-step section models

MongoDB remains schemaless; these models guard the API boundary only. Field
names are the stored (camelCase) document keys.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

PHONE_PATTERN = r"^[6-9]\d{9}$"
OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"
GST_PATTERN = r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$"
PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]
Email = Annotated[EmailStr, AfterValidator(lambda v: v.lower())]
Phone = Annotated[str, Field(pattern=PHONE_PATTERN)]
ObjectIdStr = Annotated[str, Field(pattern=OBJECT_ID_PATTERN)]
Money = Annotated[float, Field(ge=0)]


class Schema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# ---------- Admins ----------

AdminRole = Literal["admin", "super_admin"]
Username = Annotated[str, Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")]


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not PASSWORD_RULE.match(value):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return value


class SignupRequest(Schema):
    username: Username
    email: Email
    password: str
    role: AdminRole = "admin"

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password(value)


AdminCreate = SignupRequest


class LoginRequest(Schema):
    email: Email
    password: str = Field(min_length=1)


class ProfileUpdate(Schema):
    username: Optional[Username] = None
    email: Optional[Email] = None


class ChangePasswordRequest(Schema):
    currentPassword: str = Field(min_length=1)
    newPassword: str

    @field_validator("newPassword")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password(value)


class AdminUpdate(Schema):
    username: Optional[Username] = None
    email: Optional[Email] = None
    role: Optional[AdminRole] = None
    isActive: Optional[bool] = None


# ---------- Lead intake ----------

ContactStatus = Literal["new", "in_progress", "resolved", "closed"]
ContactPriority = Literal["low", "medium", "high", "urgent"]
ContactResponse = Literal["pending", "satisfied", "not_satisfied"]

DemoStatus = Literal["pending", "demo_scheduled", "demo_completed", "demo_accepted", "on_proceed", "converted", "rejected"]
DemoPriority = Literal["low", "medium", "high"]
DemoResponse = Literal["pending", "okay", "not_okay"]
DemoBusinessType = Literal[
    "retail-store", "restaurant", "service-business", "e-commerce", "manufacturing",
    "healthcare", "education", "real-estate", "construction", "consulting", "other",
]
CurrentSoftware = Literal["none", "excel", "tally", "quickbooks", "zoho", "other"]


class ContactCreate(Schema):
    name: str = Field(min_length=2, max_length=100)
    email: Email
    phone: Phone
    subject: str = Field(min_length=5, max_length=200)
    message: str = Field(min_length=10, max_length=1000)


class ContactUpdate(Schema):
    status: Optional[ContactStatus] = None
    priority: Optional[ContactPriority] = None
    assignedTo: Optional[ObjectIdStr] = None
    customerResponse: Optional[ContactResponse] = None
    customerFeedback: Optional[str] = Field(None, max_length=500)
    issueSolved: Optional[bool] = None


class NoteCreate(Schema):
    note: str = Field(min_length=5, max_length=500)


class DemoCreate(Schema):
    name: str = Field(min_length=2, max_length=100)
    business: str = Field(min_length=2, max_length=200)
    phone: Phone
    email: Email
    businessType: DemoBusinessType
    currentSoftware: CurrentSoftware = "none"
    preferredTime: str = Field(min_length=1)


class DemoUpdate(Schema):
    status: Optional[DemoStatus] = None
    demoDate: Optional[UTCDateTime] = None
    demoNotes: Optional[str] = Field(None, max_length=500)
    assignedTo: Optional[ObjectIdStr] = None
    customerResponse: Optional[DemoResponse] = None
    customerFeedback: Optional[str] = Field(None, max_length=500)
    conversionValue: Optional[Money] = None
    followUpDate: Optional[UTCDateTime] = None
    priority: Optional[DemoPriority] = None


# ---------- Clients ----------

ClientStatus = Literal["active", "inactive", "suspended", "terminated"]
ClientBusinessType = Literal["jewellery", "pawn", "other"]
BillingCycle = Literal["monthly", "quarterly", "yearly"]
PaymentMethod = Literal["upi", "bank_transfer", "card", "cash"]
IssuePriority = Literal["low", "medium", "high", "critical"]


class BusinessAddress(Schema):
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^[1-9][0-9]{5}$")
    country: Optional[str] = None


class DomainHosting(Schema):
    subdomain: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[a-z0-9-]+$")
    dnsStatus: Optional[Literal["active", "pending", "suspended"]] = None
    frontendHostingPlatform: Optional[Literal["netlify", "render"]] = None
    backendHostingPlatform: Optional[Literal["render", "other"]] = None
    sslCertificateStatus: Optional[Literal["active", "pending", "expired", "not_configured"]] = None
    websiteThemeTemplate: Optional[str] = Field(None, max_length=100)

    @field_validator("subdomain", mode="before")
    @classmethod
    def lower_subdomain(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class DatabaseSystem(Schema):
    databaseName: Optional[str] = Field(None, min_length=3, max_length=100)
    connectionUri: Optional[str] = Field(None, min_length=10)
    backupFrequency: Optional[Literal["daily", "weekly", "monthly"]] = None
    lastBackupDate: Optional[UTCDateTime] = None
    serverEnvironment: Optional[str] = Field(None, max_length=50)
    storageUsage: Optional[str] = Field(None, max_length=100)
    backendRepoLink: Optional[str] = Field(None, pattern=r"^https://(github|gitlab)\.com/.*$")


class SetupCost(Schema):
    paid: Optional[bool] = None
    amount: Optional[Money] = None


class MaintenanceFee(Schema):
    amount: Optional[Money] = None
    currency: Optional[str] = None


class PendingDues(Schema):
    amount: Optional[Money] = None
    description: Optional[str] = None


class Billing(Schema):
    setupCost: Optional[SetupCost] = None
    maintenanceFee: Optional[MaintenanceFee] = None
    billingCycle: Optional[BillingCycle] = None
    lastPaymentDate: Optional[UTCDateTime] = None
    nextPaymentDate: Optional[UTCDateTime] = None
    paymentMethod: Optional[PaymentMethod] = None
    pendingDues: Optional[PendingDues] = None


class FeatureRequest(Schema):
    feature: str = Field(min_length=1, max_length=500)
    status: Literal["requested", "in_progress", "done", "declined"] = "requested"
    assignedTo: Optional[ObjectIdStr] = None


class ServiceSupport(Schema):
    supportTicketsCount: Optional[int] = Field(None, ge=0)
    ticketSystemLink: Optional[str] = None
    lastSupportRequestDate: Optional[UTCDateTime] = None
    serviceLevel: Optional[Literal["basic", "premium", "custom"]] = None
    customFeaturesRequested: Optional[List[FeatureRequest]] = None
    previousIssuesHistory: Optional[str] = Field(None, max_length=2000)


class NotificationSettings(Schema):
    emailNotifications: Optional[bool] = None
    smsNotifications: Optional[bool] = None
    whatsappNotifications: Optional[bool] = None


class AutomationNotifications(Schema):
    autoEmailAlerts: Optional[bool] = None
    backupCompleted: Optional[bool] = None
    paymentReminder: Optional[bool] = None
    sslExpiry: Optional[bool] = None
    domainRenewal: Optional[bool] = None
    supportSlaReminder: Optional[bool] = None
    notificationSettings: Optional[NotificationSettings] = None


class AttachmentsNotes(Schema):
    contractPdf: Optional[str] = Field(None, max_length=500)
    customDesignFiles: Optional[str] = Field(None, max_length=1000)
    clientSpecificInstructions: Optional[str] = Field(None, max_length=2000)


class ClientUpdate(Schema):
    clientId: Optional[str] = Field(None, min_length=2, max_length=50)
    businessName: Optional[str] = Field(None, min_length=2, max_length=200)
    ownerContactName: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    businessAddress: Optional[BusinessAddress] = None
    onboardingDate: Optional[UTCDateTime] = None
    assignedSalesRep: Optional[ObjectIdStr] = None
    businessType: Optional[ClientBusinessType] = None
    businessCategory: Optional[str] = Field(None, max_length=100)
    targetAudience: Optional[str] = Field(None, max_length=200)
    businessDescription: Optional[str] = Field(None, max_length=1000)
    domainHosting: Optional[DomainHosting] = None
    databaseSystem: Optional[DatabaseSystem] = None
    billing: Optional[Billing] = None
    serviceSupport: Optional[ServiceSupport] = None
    automationNotifications: Optional[AutomationNotifications] = None
    attachmentsNotes: Optional[AttachmentsNotes] = None
    status: Optional[ClientStatus] = None


# Dotted paths a new client must carry.
CLIENT_REQUIRED_PATHS = (
    "businessName",
    "ownerContactName",
    "email",
    "phone",
    "businessType",
    "domainHosting.subdomain",
    "databaseSystem.databaseName",
    "databaseSystem.connectionUri",
    "billing.maintenanceFee.amount",
    "billing.billingCycle",
    "billing.paymentMethod",
)


def _get_path(data: Dict[str, Any], path: str) -> Any:
    node: Any = data
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


class ClientCreate(ClientUpdate):
    status: ClientStatus = "active"

    @model_validator(mode="after")
    def required_sections(self) -> "ClientCreate":
        data = self.model_dump(exclude_none=True)
        missing = [p for p in CLIENT_REQUIRED_PATHS if _get_path(data, p) in (None, "")]
        if self.status == "active" and _get_path(data, "billing.nextPaymentDate") is None:
            missing.append("billing.nextPaymentDate")
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")
        return self


class InternalNoteCreate(Schema):
    note: str = Field(min_length=5, max_length=1000)
    isPrivate: bool = True


class IssueCreate(Schema):
    issue: str = Field(min_length=5, max_length=500)
    priority: IssuePriority = "medium"
    assignedTo: Optional[ObjectIdStr] = None


class PaymentUpdate(Schema):
    amount: Optional[Money] = None
    paymentDate: Optional[UTCDateTime] = None
    paymentMethod: Optional[PaymentMethod] = None
    nextPaymentDate: Optional[UTCDateTime] = None


# ---------- Onboarding ----------

OnboardingStatus = Literal["Draft", "Submitted", "Under Review", "Approved", "Rejected"]


class PersonalDetails(Schema):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    fatherName: Optional[str] = Field(None, min_length=2, max_length=100)
    address: Optional[str] = Field(None, min_length=10, max_length=500)
    state: Optional[str] = Field(None, min_length=2, max_length=50)
    district: Optional[str] = Field(None, min_length=2, max_length=50)
    phoneNumber1: Optional[Phone] = None
    phoneNumber2: Optional[Phone] = None
    nomineeName: Optional[str] = Field(None, min_length=2, max_length=100)


class BusinessDetails(Schema):
    businessName: Optional[str] = Field(None, min_length=2, max_length=200)
    address: Optional[str] = Field(None, min_length=10, max_length=500)
    state: Optional[str] = Field(None, min_length=2, max_length=50)
    district: Optional[str] = Field(None, min_length=2, max_length=50)
    phoneNumber: Optional[Phone] = None
    gstNumber: Optional[str] = Field(None, pattern=GST_PATTERN)
    businessDescription: Optional[str] = Field(None, min_length=10, max_length=1000)
    businessSize: Optional[Literal["Small", "Medium", "Large", "Enterprise"]] = None
    yearsOfBusiness: Optional[int] = Field(None, ge=0, le=100)


class PlanDetails(Schema):
    accessType: Optional[str] = Field(None, max_length=100)
    maintenanceFrequency: Optional[Literal["Monthly", "Quarterly", "Half Yearly", "Yearly"]] = None
    customPricing: Optional[bool] = None
    pricingData: Optional[Dict[str, Any]] = None


class AdditionalCosts(Schema):
    constant: Optional[Money] = None
    hosting: Optional[Money] = None
    domain: Optional[Money] = None
    storage: Optional[Money] = None
    maintenance: Optional[Money] = None
    websiteCost: Optional[Money] = None


class PaymentDetails(Schema):
    # totalAmount is derived on every save and never accepted from callers.
    planPrice: Optional[Money] = None
    projectPrice: Optional[Money] = None
    hostingYearlyPrice: Optional[Money] = None
    additionalCosts: Optional[AdditionalCosts] = None


class StepNotes(Schema):
    notes: Optional[str] = Field(None, max_length=1000)


class OnboardingPayload(Schema):
    personalDetails: Optional[PersonalDetails] = None
    businessDetails: Optional[BusinessDetails] = None
    planDetails: Optional[PlanDetails] = None
    paymentDetails: Optional[PaymentDetails] = None
    notes: Optional[str] = Field(None, max_length=1000)


class OnboardingStatusUpdate(Schema):
    status: OnboardingStatus
