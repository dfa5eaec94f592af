"""
Document Schemas for the Tutoring Platform

Each top-level model is stored as one document:
- User        -> users[index_number]
- Course      -> courses[id]
- SiteSettings -> site["settings"]
- counter     -> metadata["user_counter"] = {"current": int}
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Role = Literal["student", "admin"]
Capability = Literal["manage_students", "manage_branding", "manage_site"]
UploadTarget = Literal["logo", "background", "tutor"]

ALL_CAPABILITIES: List[str] = ["manage_students", "manage_branding", "manage_site"]
MAX_STARS_PER_YEAR = 5


class Mark(BaseModel):
    label: str
    score: int
    date: str = Field(..., description="ISO-8601 timestamp")


class User(BaseModel):
    index_number: str = Field(..., description="Unique sequential index number")
    name: str = Field(..., description="Full name")
    contact: str = Field(..., description="Phone or email used to log in")
    password_hash: str = Field(..., description="Password hash")
    school: str = ""
    birthday: str = ""
    exam_year: str = ""
    role: Role = Field("student", description="User role")
    capabilities: List[Capability] = Field(default_factory=list)
    active_courses: List[str] = Field(default_factory=list)
    marks: List[Mark] = Field(default_factory=list)
    watch_time: Dict[str, int] = Field(
        default_factory=dict, description="Course id -> minutes watched"
    )
    revision: int = Field(0, description="Incremented on every write")


class CourseVideo(BaseModel):
    id: str = Field("", description="External video id, e.g. YouTube")
    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("video title must not be empty")
        return v


class Course(BaseModel):
    id: str
    title: str
    description: str = ""
    price: int = 0
    thumbnail: str = ""
    duration_minutes: int = 0
    videos: List[CourseVideo] = Field(default_factory=list)


class FreeVideo(BaseModel):
    id: str
    title: str


class HeroStat(BaseModel):
    label: str
    value: str


class LiveSession(BaseModel):
    id: str
    title: str
    thumbnail: str = ""
    youtube_id: str = ""
    exam_year: str = ""
    start_time: str = ""
    duration_minutes: int = 60


class TopStudent(BaseModel):
    rank: int
    name: str = ""
    index: str = ""
    score: str = ""


class ExamYearStars(BaseModel):
    year: str
    students: List[TopStudent] = Field(default_factory=list)

    @field_validator("students")
    @classmethod
    def at_most_five(cls, v: List[TopStudent]) -> List[TopStudent]:
        if len(v) > MAX_STARS_PER_YEAR:
            raise ValueError(f"at most {MAX_STARS_PER_YEAR} top students per year")
        return v


class SiteSettings(BaseModel):
    free_videos: List[FreeVideo] = Field(default_factory=list)
    gallery_images: List[str] = Field(default_factory=list)
    contact_email: str = ""
    contact_phone: str = ""
    bank_details: str = ""
    logo_url: str = ""
    background_images: List[str] = Field(default_factory=list)
    live_sessions: List[LiveSession] = Field(default_factory=list)
    hero_badge: str = ""
    hero_title: str = ""
    hero_subtitle: str = ""
    hero_tutor_image: str = ""
    hero_stats: List[HeroStat] = Field(default_factory=list)
    top_stars: List[ExamYearStars] = Field(default_factory=list)
    revision: int = 0


# ----------------------
# Request / response bodies
# ----------------------

class RegisterRequest(BaseModel):
    name: str
    contact: str
    password: str = Field(..., min_length=1)
    school: str = ""
    birthday: str = ""
    exam_year: str = ""


class LoginRequest(BaseModel):
    contact: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    """User as returned by the API, without the password hash."""

    index_number: str
    name: str
    contact: str
    school: str
    birthday: str
    exam_year: str
    role: Role
    capabilities: List[Capability]
    active_courses: List[str]
    marks: List[Mark]
    watch_time: Dict[str, int]
    revision: int

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(**user.model_dump(exclude={"password_hash"}))


class MarkCreate(BaseModel):
    score: int
    label: Optional[str] = None


class PasswordReset(BaseModel):
    password: str = Field(..., min_length=1)


class WatchTimeUpdate(BaseModel):
    course_id: str
    minutes: int = Field(..., ge=0)
