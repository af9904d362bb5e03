from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

# Documents are stored snake_case; the API speaks camelCase and accepts both.

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Role(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class Level(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Capability(str, Enum):
    MANAGE_COURSES = "manage_courses"
    REVIEW_COURSES = "review_courses"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.STUDENT: frozenset({Capability.REVIEW_COURSES}),
    Role.INSTRUCTOR: frozenset({Capability.MANAGE_COURSES, Capability.REVIEW_COURSES}),
    Role.ADMIN: frozenset({Capability.MANAGE_COURSES, Capability.REVIEW_COURSES}),
}


def roles_with(capability: Capability) -> List[Role]:
    return [role for role, caps in ROLE_CAPABILITIES.items() if capability in caps]


# ── Users ────────────────────────────────────────────────────────────────────

def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class UserCreate(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    role: Role = Role.STUDENT

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, value):
        return _lower(value)

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, value):
        # null or empty means unspecified
        return value or Role.STUDENT


class UserLogin(ApiModel):
    email: str
    password: str

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, value):
        return _lower(value)


class UserUpdate(ApiModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    first_name: Optional[TrimmedStr] = None
    last_name: Optional[TrimmedStr] = None

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, value):
        return _lower(value)


class UserPublic(ApiModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSummary(ApiModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    token: str


class Identity(ApiModel):
    """The verified caller, handed explicitly to every protected handler."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())


# ── Courses ──────────────────────────────────────────────────────────────────

class CourseCreate(ApiModel):
    title: NonEmptyStr
    description: NonEmptyStr
    category: NonEmptyStr
    level: Level
    price: float = Field(ge=0)
    duration: float = Field(ge=0, description="in hours")
    topics: List[TrimmedStr] = []
    requirements: List[TrimmedStr] = []
    learning_objectives: List[TrimmedStr] = []
    is_published: bool = False
    enrolled_students: int = 0


class CourseUpdate(ApiModel):
    title: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    category: Optional[NonEmptyStr] = None
    level: Optional[Level] = None
    price: Optional[float] = Field(default=None, ge=0)
    duration: Optional[float] = Field(default=None, ge=0)
    topics: Optional[List[TrimmedStr]] = None
    requirements: Optional[List[TrimmedStr]] = None
    learning_objectives: Optional[List[TrimmedStr]] = None
    is_published: Optional[bool] = None
    enrolled_students: Optional[int] = None


class ReviewCreate(ApiModel):
    rating: int = Field(ge=1, le=5)
    comment: NonEmptyStr


class InstructorRef(ApiModel):
    id: str
    first_name: str
    last_name: str
    email: str


class ReviewerRef(ApiModel):
    id: str
    first_name: str
    last_name: str


class ReviewOut(ApiModel):
    id: str
    user: Union[ReviewerRef, str]
    rating: int
    comment: str
    created_at: Optional[datetime] = None


class CourseOut(ApiModel):
    id: str
    title: str
    description: str
    instructor: Union[InstructorRef, str]
    category: str
    level: Level
    price: float
    duration: float
    topics: List[str] = []
    requirements: List[str] = []
    learning_objectives: List[str] = []
    is_published: bool = False
    enrolled_students: int = 0
    rating: float = Field(default=0, ge=0, le=5)
    reviews: List[ReviewOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CourseList(ApiModel):
    courses: List[CourseOut]
    page: int
    pages: int
    total: int


class Message(ApiModel):
    message: str
