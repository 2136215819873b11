"""
Domain models for platform accounts.

Athletes, coaches and SAI officials share one identity shape (name, email,
contact details, activation flags) and differ only in their profile data.
Each role is a dataclass subclass of Account so the repository can keep all
of them in one table while email stays unique across roles.

These models know nothing about HTTP or Snowflake.
"""

import copy
import re
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional
from uuid import UUID, uuid4

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

DEFAULT_BADGE_ICON = "fas fa-medal"
BADGE_POINTS = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Emails are matched case-insensitively and without surrounding space."""
    return (email or "").strip().lower()


class Role(Enum):
    """Which kind of account a user holds. Encoded into every access token."""
    ATHLETE = "athlete"
    COACH = "coach"
    OFFICIAL = "sai_official"


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AthleteLevel(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    PROFESSIONAL = "professional"
    ELITE = "elite"


class CoachingLevel(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ELITE = "elite"
    INTERNATIONAL = "international"


class AccessLevel(Enum):
    """
    Clearance of an SAI official.

    Most officials are BASIC; destructive operations on other users'
    submissions need ADMIN.
    """
    BASIC = "basic"
    ADVANCED = "advanced"
    ADMIN = "admin"


class BloodGroup(Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class DuplicateBadgeError(ValueError):
    """Raised when awarding a badge the account already holds."""
    pass


@dataclass
class Badge:
    """Recognition awarded by an official. Worth BADGE_POINTS points."""
    name: str
    description: str = ""
    icon: str = DEFAULT_BADGE_ICON
    earned_at: datetime = field(default_factory=_now)


@dataclass
class EmergencyContact:
    name: str = ""
    phone: str = ""
    relationship: str = ""


@dataclass
class PersonalBest:
    event: str
    performance: str
    achieved_on: Optional[date] = None
    venue: str = ""


@dataclass
class Achievement:
    title: str
    description: str = ""
    achieved_on: Optional[date] = None
    level: str = "local"  # local, state, national, international


@dataclass
class Certification:
    name: str
    issued_by: str = ""
    issued_date: Optional[date] = None
    expiry_date: Optional[date] = None
    certificate_number: str = ""
    is_active: bool = True


@dataclass
class Account:
    """
    Fields every account has, whatever its role.

    Subclasses set `role` and extend the set of fields a user may change
    about themselves through PROFILE_FIELDS.
    """
    role: ClassVar[Role]
    PROFILE_FIELDS: ClassVar[frozenset[str]] = frozenset({"name", "phone", "state", "city"})

    name: str
    email: str
    password_hash: str = ""
    id: UUID = field(default_factory=uuid4)
    phone: str = ""
    date_of_birth: Optional[date] = None
    gender: Gender = Gender.OTHER
    state: str = ""
    city: str = ""
    profile_image: Optional[str] = None
    is_verified: bool = False
    is_active: bool = True
    last_login: Optional[datetime] = None
    points: int = 0
    badges: list[Badge] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
        self.name = self.name.strip()
        self._validate()

    def _validate(self) -> None:
        if not 2 <= len(self.name) <= 100:
            raise ValueError("Name must be between 2 and 100 characters")
        if not EMAIL_PATTERN.match(self.email):
            raise ValueError("Please enter a valid email")
        if self.phone and not PHONE_PATTERN.match(self.phone):
            raise ValueError("Please enter a valid phone number")

    @property
    def location(self) -> str:
        return f"{self.city}, {self.state}"

    @property
    def specialization(self) -> Optional[str]:
        """Single display string for the sport(s) this account is tied to."""
        return None

    def record_login(self, when: Optional[datetime] = None) -> None:
        self.last_login = when or _now()
        self.updated_at = self.last_login

    def apply_profile_update(self, changes: dict[str, Any]) -> list[str]:
        """
        Apply a self-service profile edit.

        Keys outside PROFILE_FIELDS are ignored rather than rejected so a
        client can send one form shape for every role. Returns the names of
        the fields that were applied. A rejected edit leaves the account
        unchanged.
        """
        candidate = copy.deepcopy(self)
        applied = []
        for key, value in changes.items():
            if value is None or key not in self.PROFILE_FIELDS:
                continue
            candidate._set_profile_field(key, value)
            applied.append(key)

        if applied:
            candidate._validate()
            candidate.updated_at = _now()
            for f in fields(self):
                setattr(self, f.name, getattr(candidate, f.name))
        return applied

    def _set_profile_field(self, key: str, value: Any) -> None:
        setattr(self, key, value.strip() if isinstance(value, str) else value)

    def has_badge(self, name: str) -> bool:
        return any(badge.name == name for badge in self.badges)

    def award_badge(
        self,
        name: str,
        description: str,
        icon: Optional[str] = None,
    ) -> Badge:
        """Give the account a badge and the points that come with it."""
        if self.has_badge(name):
            raise DuplicateBadgeError("User already has this badge")

        badge = Badge(name=name, description=description, icon=icon or DEFAULT_BADGE_ICON)
        self.badges.append(badge)
        self.points += BADGE_POINTS
        self.updated_at = _now()
        return badge

    def set_status(self, is_active: bool, is_verified: Optional[bool] = None) -> None:
        self.is_active = is_active
        if is_verified is not None:
            self.is_verified = is_verified
        self.updated_at = _now()

    def to_public_dict(self) -> dict[str, Any]:
        """Everything a client may see about the account. Never the password hash."""
        data = asdict(self)
        data.pop("password_hash", None)
        data["role"] = self.role.value
        data["location"] = self.location
        data["specialization"] = self.specialization
        return data

    def summary(self) -> dict[str, Any]:
        """The short form returned alongside a token."""
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "user_type": self.role.value,
            "is_verified": self.is_verified,
            "points": self.points,
        }


@dataclass
class Athlete(Account):
    """An athlete profile: sport, physical data and gamification."""
    role: ClassVar[Role] = Role.ATHLETE
    PROFILE_FIELDS: ClassVar[frozenset[str]] = Account.PROFILE_FIELDS | {
        "sport", "specialization", "height_cm", "weight_kg",
        "blood_group", "emergency_contact",
    }

    sport: Optional[str] = None
    category: Optional[str] = None
    level: AthleteLevel = AthleteLevel.BEGINNER
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    blood_group: Optional[BloodGroup] = None
    emergency_contact: Optional[EmergencyContact] = None
    training_center: Optional[str] = None
    coach_id: Optional[UUID] = None
    personal_bests: list[PersonalBest] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    performance_level: int = 1

    def _validate(self) -> None:
        super()._validate()
        if self.height_cm is not None and not 50 <= self.height_cm <= 300:
            raise ValueError("Height must be between 50 and 300 cm")
        if self.weight_kg is not None and not 20 <= self.weight_kg <= 300:
            raise ValueError("Weight must be between 20 and 300 kg")

    @property
    def bmi(self) -> Optional[float]:
        if not self.height_cm or not self.weight_kg:
            return None
        height_m = self.height_cm / 100
        return round(self.weight_kg / (height_m * height_m), 2)

    @property
    def specialization(self) -> Optional[str]:
        return self.sport

    def to_public_dict(self) -> dict[str, Any]:
        data = super().to_public_dict()
        data["bmi"] = self.bmi
        return data

    def _set_profile_field(self, key: str, value: Any) -> None:
        if key == "specialization":
            key = "sport"
        if key == "blood_group" and not isinstance(value, BloodGroup):
            value = BloodGroup(value)
        if key == "emergency_contact" and isinstance(value, dict):
            value = EmergencyContact(**value)
        super()._set_profile_field(key, value)


@dataclass
class Coach(Account):
    """A coach profile: specialisations, credentials and roster capacity."""
    role: ClassVar[Role] = Role.COACH
    PROFILE_FIELDS: ClassVar[frozenset[str]] = Account.PROFILE_FIELDS | {
        "specialization", "experience_years", "certifications",
    }

    specializations: list[str] = field(default_factory=list)
    experience_years: int = 0
    coaching_level: Optional[CoachingLevel] = None
    certifications: list[Certification] = field(default_factory=list)
    athlete_ids: list[UUID] = field(default_factory=list)
    max_athletes: int = 20
    is_accepting_athletes: bool = True
    rating_average: float = 0.0
    rating_count: int = 0

    def _validate(self) -> None:
        super()._validate()
        if self.experience_years < 0:
            raise ValueError("Experience cannot be negative")
        if self.max_athletes < 1:
            raise ValueError("Coach must accept at least one athlete")
        if not 0 <= self.rating_average <= 5:
            raise ValueError("Rating must be between 0 and 5")

    @property
    def specialization(self) -> Optional[str]:
        return ", ".join(self.specializations) or None

    def _set_profile_field(self, key: str, value: Any) -> None:
        if key == "specialization":
            key = "specializations"
            value = [value] if isinstance(value, str) else list(value)
            value = [s.strip() for s in value if s and s.strip()]
        if key == "certifications":
            value = [c if isinstance(c, Certification) else Certification(**c) for c in value]
        super()._set_profile_field(key, value)


@dataclass
class Official(Account):
    """An SAI official. access_level gates administrative operations."""
    role: ClassVar[Role] = Role.OFFICIAL

    employee_id: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    office_location: Optional[str] = None
    access_level: AccessLevel = AccessLevel.BASIC
    permissions: list[str] = field(default_factory=list)
    reporting_manager: Optional[str] = None
    areas_of_responsibility: list[str] = field(default_factory=list)


ACCOUNT_TYPES: dict[Role, type[Account]] = {
    Role.ATHLETE: Athlete,
    Role.COACH: Coach,
    Role.OFFICIAL: Official,
}
