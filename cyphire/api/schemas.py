"""
Pydantic request schemas.

Every write endpoint validates its body through one of these models before
handing plain values to the workflow layer.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ..models import (
    ApplicationStatus,
    IntellectualCategory,
    Plan,
    TaskStatus,
    TicketStatus,
    TicketType,
)
from ..workflows.task_manager import normalize_categories


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# === Auth ===

class SignupRequest(BaseModel):
    name: str = Field(min_length=2, max_length=80)
    email: EmailStr
    password: str = Field(min_length=10, max_length=200)
    remember_me: bool = False


class SigninRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    remember_me: bool = False


class AdminLoginRequest(BaseModel):
    email: str
    password: str
    secret: str


# === Users ===

SkillName = Annotated[str, Field(max_length=32)]


class UpdateMeRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=40)
    country: Optional[str] = Field(default=None, max_length=64)
    phone: Optional[str] = Field(default=None, max_length=32)
    skills: Optional[Union[list[SkillName], str]] = None
    bio: Optional[str] = Field(default=None, max_length=300)


class ProjectInput(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    link: str = Field(default="", max_length=500)


class SaveProjectsRequest(BaseModel):
    projects: list[ProjectInput]


class UpdateProjectRequest(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    link: Optional[str] = Field(default=None, max_length=500)


class SetPlanRequest(BaseModel):
    plan: Plan


class BlockUserRequest(BaseModel):
    blocked: bool = True


# === Tasks ===

class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=10000)
    price: int = Field(ge=1)
    category: Union[str, list[str]]
    number_of_applicants: int = Field(ge=1)
    deadline: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("category")
    @classmethod
    def category_not_empty(cls, value):
        categories = normalize_categories(value)
        if not categories:
            raise ValueError("at least one category is required")
        return categories

    @field_validator("deadline")
    @classmethod
    def deadline_utc(cls, value):
        return _naive_utc(value)


class SelectApplicantRequest(BaseModel):
    applicant_id: str = Field(min_length=1)


class TaskStatusRequest(BaseModel):
    status: TaskStatus


class FlagTaskRequest(BaseModel):
    flagged: bool = True


# === Payments ===

class CreateOrderRequest(BaseModel):
    amount: int = Field(ge=1)


class GatewayCallback(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


class VerifyPaymentRequest(GatewayCallback, CreateTaskRequest):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=10000)


class VerifyAndSelectRequest(GatewayCallback):
    task_id: str = Field(min_length=1)
    applicant_id: str = Field(min_length=1)


class PaymentLogRequest(BaseModel):
    upi_id: str = Field(min_length=3, max_length=100)

    @field_validator("upi_id")
    @classmethod
    def looks_like_upi(cls, value):
        if "@" not in value:
            raise ValueError("Must be a valid UPI id")
        return value.strip()


class PaymentStatusRequest(BaseModel):
    paid: bool


# === Workrooms ===

class PostMessageRequest(BaseModel):
    text: str = Field(default="", max_length=2000)


# === Help ===

class CreateTicketRequest(BaseModel):
    subject: str = Field(min_length=4, max_length=200)
    description: str = Field(min_length=12, max_length=5000)
    type: TicketType


class CommentRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class AdminReplyRequest(CommentRequest):
    status: Optional[TicketStatus] = None


class AskQuestionRequest(BaseModel):
    question: str = Field(min_length=8, max_length=2000)


class AnswerRequest(BaseModel):
    answer: str = Field(min_length=8, max_length=5000)


class ShowOnHelpPageRequest(BaseModel):
    show: bool


# === Admin ===

class IpRequest(BaseModel):
    ip: str = Field(min_length=1, max_length=64)
    reason: str = Field(default="", max_length=200)


# === Intellectuals ===

def _url_or_empty(value: str) -> str:
    value = (value or "").strip()
    if value and not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


class Socials(BaseModel):
    website: str = ""
    linkedin: str = ""
    twitter: str = ""
    youtube: str = ""
    instagram: str = ""

    @field_validator("*")
    @classmethod
    def check_url(cls, value):
        return _url_or_empty(value)


class IntellectualProfile(BaseModel):
    full_name: str = Field(min_length=2, max_length=120)
    headline: str = Field(default="", max_length=160)
    bio: str = Field(default="", max_length=5000)
    languages: list[str] = Field(default_factory=list)
    location: str = Field(default="", max_length=120)
    socials: Socials = Field(default_factory=Socials)


class ProfessorBlock(BaseModel):
    institution: str = Field(min_length=2)
    department: str = Field(min_length=2)
    designation: str = ""
    expertise: list[str] = Field(default_factory=list)
    publications: int = Field(default=0, ge=0)
    google_scholar: str = ""

    @field_validator("google_scholar")
    @classmethod
    def scholar_url(cls, value):
        return _url_or_empty(value)


class PlatformHandle(BaseModel):
    name: Literal["youtube", "instagram", "x", "linkedin", "tiktok", "other"]
    handle: str = Field(min_length=1)
    followers: int = Field(ge=0)


class InfluencerBlock(BaseModel):
    niches: list[str] = Field(min_length=1)
    platforms: list[PlatformHandle] = Field(min_length=1)


class IndustryExpertBlock(BaseModel):
    company: str = Field(min_length=2)
    role: str = Field(min_length=2)
    years_experience: float = Field(ge=0)
    domains: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)


class CoachBlock(BaseModel):
    focus_areas: list[str] = Field(min_length=1)
    sessions_offered: list[str] = Field(min_length=1)
    price_hint: float = Field(default=0, ge=0)


CATEGORY_BLOCKS = {
    IntellectualCategory.PROFESSOR: "professor",
    IntellectualCategory.INFLUENCER: "influencer",
    IntellectualCategory.INDUSTRY_EXPERT: "industry_expert",
    IntellectualCategory.COACH: "coach",
}


class IntellectualApplicationRequest(BaseModel):
    category: IntellectualCategory
    profile: IntellectualProfile
    professor: Optional[ProfessorBlock] = None
    influencer: Optional[InfluencerBlock] = None
    industry_expert: Optional[IndustryExpertBlock] = None
    coach: Optional[CoachBlock] = None

    @model_validator(mode="after")
    def category_block_present(self):
        if getattr(self, CATEGORY_BLOCKS[self.category]) is None:
            raise ValueError(f"{CATEGORY_BLOCKS[self.category]} details are required")
        return self

    def details(self) -> dict:
        return getattr(self, CATEGORY_BLOCKS[self.category]).model_dump()


class ApplicationStatusRequest(BaseModel):
    status: ApplicationStatus
    note: str = Field(default="", max_length=2000)


class ReviewNoteRequest(BaseModel):
    note: str = Field(min_length=3, max_length=2000)
