"""
Unit tests for accounts: profiles, passwords and tokens, reset codes
and leaderboards.

Pure domain tests - no HTTP, no database.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import pytest

from src.core.accounts.models import (
    BADGE_POINTS,
    AccessLevel,
    Athlete,
    AthleteLevel,
    BloodGroup,
    Coach,
    DuplicateBadgeError,
    EmergencyContact,
    Official,
    Role,
    normalize_email,
)
from src.core.accounts.otp import OneTimePassword, OtpOutcome, generate_otp_code
from src.core.accounts.rankings import build_leaderboard, platform_stats, rank_by_points
from src.core.accounts.security import (
    AuthenticationError,
    TokenExpiredError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

SECRET = "unit-test-secret"


def make_athlete(**overrides) -> Athlete:
    fields = {"name": "Asha Rao", "email": "asha@example.com", "state": "Karnataka", "city": "Mysuru"}
    fields.update(overrides)
    return Athlete(**fields)


# ---------------------------------------------------------------------------
# Account Model Tests
# ---------------------------------------------------------------------------

class TestAccount:
    """Validation and behaviour shared by every role."""

    def test_email_is_normalized(self):
        athlete = make_athlete(email="  Asha@Example.COM ")
        assert athlete.email == "asha@example.com"
        assert normalize_email(" X@Y.io ") == "x@y.io"

    def test_rejects_short_name(self):
        with pytest.raises(ValueError, match="Name must be between"):
            make_athlete(name="A")

    def test_rejects_invalid_email(self):
        with pytest.raises(ValueError, match="valid email"):
            make_athlete(email="not-an-email")

    def test_rejects_invalid_phone(self):
        with pytest.raises(ValueError, match="valid phone"):
            make_athlete(phone="call me maybe")

    def test_roles_are_class_level(self):
        assert make_athlete().role == Role.ATHLETE
        assert Coach(name="Ravi K", email="ravi@example.com").role == Role.COACH
        assert Official(name="Meera S", email="meera@example.com").role == Role.OFFICIAL

    def test_location_joins_city_and_state(self):
        assert make_athlete().location == "Mysuru, Karnataka"

    def test_public_dict_never_contains_password_hash(self):
        athlete = make_athlete(password_hash="pbkdf2:sha256$abc")
        data = athlete.to_public_dict()
        assert "password_hash" not in data
        assert data["role"] == "athlete"
        assert data["location"] == "Mysuru, Karnataka"

    def test_summary_is_token_sized(self):
        summary = make_athlete().summary()
        assert set(summary) == {"id", "name", "email", "user_type", "is_verified", "points"}
        assert summary["user_type"] == "athlete"


class TestAthlete:

    def test_bmi_is_computed_from_height_and_weight(self):
        athlete = make_athlete(height_cm=180, weight_kg=81)
        assert athlete.bmi == 25.0

    def test_bmi_is_none_without_measurements(self):
        assert make_athlete().bmi is None

    def test_rejects_out_of_range_height(self):
        with pytest.raises(ValueError, match="Height"):
            make_athlete(height_cm=20)

    def test_specialization_is_sport(self):
        assert make_athlete(sport="athletics").specialization == "athletics"

    def test_profile_update_ignores_fields_of_other_roles(self):
        athlete = make_athlete()
        applied = athlete.apply_profile_update({
            "city": "Bengaluru",
            "experience_years": 12,
            "email": "hijack@example.com",
        })
        assert applied == ["city"]
        assert athlete.city == "Bengaluru"
        assert athlete.email == "asha@example.com"

    def test_profile_update_converts_nested_values(self):
        athlete = make_athlete()
        athlete.apply_profile_update({
            "specialization": "swimming",
            "blood_group": "O+",
            "emergency_contact": {"name": "Lakshmi", "phone": "+91 90000 00000", "relationship": "mother"},
        })
        assert athlete.sport == "swimming"
        assert athlete.blood_group == BloodGroup.O_POS
        assert athlete.emergency_contact == EmergencyContact("Lakshmi", "+91 90000 00000", "mother")

    def test_profile_update_revalidates(self):
        athlete = make_athlete()
        with pytest.raises(ValueError, match="Weight"):
            athlete.apply_profile_update({"weight_kg": 5})

    def test_rejected_update_changes_nothing(self):
        athlete = make_athlete(height_cm=170, weight_kg=65)
        before = athlete.updated_at

        with pytest.raises(ValueError, match="Height"):
            athlete.apply_profile_update({"city": "Bengaluru", "weight_kg": 70, "height_cm": 20})
        with pytest.raises(ValueError):
            athlete.apply_profile_update({"name": "Asha R", "blood_group": "Z+"})

        assert athlete.city == "Mysuru"
        assert athlete.name == "Asha Rao"
        assert (athlete.height_cm, athlete.weight_kg) == (170, 65)
        assert athlete.updated_at == before


class TestCoach:

    def test_specialization_joins_list(self):
        coach = Coach(name="Ravi K", email="ravi@example.com", specializations=["athletics", "football"])
        assert coach.specialization == "athletics, football"

    def test_specialization_update_accepts_string(self):
        coach = Coach(name="Ravi K", email="ravi@example.com")
        coach.apply_profile_update({"specialization": " hockey "})
        assert coach.specializations == ["hockey"]

    def test_rejects_negative_experience(self):
        with pytest.raises(ValueError, match="Experience"):
            Coach(name="Ravi K", email="ravi@example.com", experience_years=-1)


class TestBadges:

    def test_award_badge_adds_points(self):
        athlete = make_athlete()
        badge = athlete.award_badge("State Champion", "Won state finals")
        assert badge.name == "State Champion"
        assert athlete.points == BADGE_POINTS
        assert athlete.has_badge("State Champion")

    def test_duplicate_badge_is_rejected(self):
        athlete = make_athlete()
        athlete.award_badge("State Champion", "")
        with pytest.raises(DuplicateBadgeError, match="already has this badge"):
            athlete.award_badge("State Champion", "")
        assert athlete.points == BADGE_POINTS

    def test_set_status_keeps_verification_when_not_given(self):
        athlete = make_athlete(is_verified=True)
        athlete.set_status(False)
        assert athlete.is_active is False
        assert athlete.is_verified is True


# ---------------------------------------------------------------------------
# Password and Token Tests
# ---------------------------------------------------------------------------

class TestPasswords:

    def test_hash_verifies(self):
        hashed = hash_password("secret123")
        assert hashed != "secret123"
        assert verify_password(hashed, "secret123")
        assert not verify_password(hashed, "secret124")

    def test_short_password_is_rejected(self):
        with pytest.raises(ValueError, match="at least 6"):
            hash_password("12345")

    def test_empty_hash_never_verifies(self):
        assert verify_password("", "anything") is False


class TestAccessTokens:

    def test_round_trip_carries_id_and_role(self):
        account_id = uuid4()
        token = create_access_token(account_id, Role.COACH, SECRET)
        claims = decode_access_token(token, SECRET)
        assert claims.account_id == account_id
        assert claims.role == Role.COACH

    def test_token_expires_after_configured_days(self):
        issued = datetime(2024, 1, 1, tzinfo=timezone.utc)
        token = create_access_token(uuid4(), Role.ATHLETE, SECRET, expire_days=7, now=issued)
        payload = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_exp": False})
        assert payload["exp"] - payload["iat"] == 7 * 24 * 3600

    def test_expired_token_raises_expired(self):
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        token = create_access_token(uuid4(), Role.ATHLETE, SECRET, expire_days=7, now=issued)
        with pytest.raises(TokenExpiredError):
            decode_access_token(token, SECRET)

    def test_wrong_secret_is_invalid(self):
        token = create_access_token(uuid4(), Role.ATHLETE, SECRET)
        with pytest.raises(AuthenticationError) as exc_info:
            decode_access_token(token, "another-secret")
        assert not isinstance(exc_info.value, TokenExpiredError)

    def test_payload_without_role_is_invalid(self):
        token = jwt.encode(
            {"userId": str(uuid4()), "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError, match="payload"):
            decode_access_token(token, SECRET)

    def test_garbage_is_invalid(self):
        with pytest.raises(AuthenticationError):
            decode_access_token("not.a.token", SECRET)


# ---------------------------------------------------------------------------
# One-Time Password Tests
# ---------------------------------------------------------------------------

class TestOneTimePassword:

    NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_generated_codes_are_six_digits(self):
        for _ in range(50):
            code = generate_otp_code()
            assert len(code) == 6 and code.isdigit() and code[0] != "0"

    def test_issue_sets_expiry(self):
        otp = OneTimePassword.issue("a@example.com", ttl_minutes=10, now=self.NOW)
        assert otp.expires_at == self.NOW + timedelta(minutes=10)
        assert otp.verified is False

    def test_correct_code_verifies(self):
        otp = OneTimePassword("a@example.com", "123456", self.NOW + timedelta(minutes=10))
        check = otp.check("123456", now=self.NOW)
        assert check.outcome == OtpOutcome.VERIFIED
        assert otp.verified is True
        assert otp.can_reset_password("123456", now=self.NOW)

    def test_wrong_code_counts_attempts(self):
        otp = OneTimePassword("a@example.com", "123456", self.NOW + timedelta(minutes=10))
        first = otp.check("000000", now=self.NOW)
        second = otp.check("000000", now=self.NOW)
        assert first.outcome == OtpOutcome.MISMATCH
        assert first.attempts_remaining == 2
        assert second.attempts_remaining == 1
        assert not second.discard

    def test_third_wrong_code_locks(self):
        otp = OneTimePassword("a@example.com", "123456", self.NOW + timedelta(minutes=10))
        for _ in range(2):
            otp.check("000000", now=self.NOW)
        check = otp.check("000000", now=self.NOW)
        assert check.outcome == OtpOutcome.LOCKED
        assert check.discard

    def test_expired_code_is_discarded(self):
        otp = OneTimePassword("a@example.com", "123456", self.NOW - timedelta(seconds=1))
        check = otp.check("123456", now=self.NOW)
        assert check.outcome == OtpOutcome.EXPIRED
        assert check.discard
        assert otp.verified is False

    def test_unverified_code_cannot_reset(self):
        otp = OneTimePassword("a@example.com", "123456", self.NOW + timedelta(minutes=10))
        assert not otp.can_reset_password("123456", now=self.NOW)

    def test_rejects_malformed_code(self):
        with pytest.raises(ValueError, match="6 digits"):
            OneTimePassword("a@example.com", "12ab56", self.NOW)


# ---------------------------------------------------------------------------
# Leaderboard and Stats Tests
# ---------------------------------------------------------------------------

class TestRankings:

    def test_points_then_performance_level_then_name(self):
        low = make_athlete(name="Zara", email="z@example.com", points=10)
        tied_strong = make_athlete(name="Yash", email="y@example.com", points=50, performance_level=4)
        tied_weak_b = make_athlete(name="Bala", email="b@example.com", points=50, performance_level=1)
        tied_weak_a = make_athlete(name="Anil", email="a@example.com", points=50, performance_level=1)

        ranked = rank_by_points([low, tied_weak_b, tied_strong, tied_weak_a])
        assert [a.name for a in ranked] == ["Yash", "Anil", "Bala", "Zara"]

    def test_leaderboard_entries(self):
        athlete = make_athlete(points=120, level=AthleteLevel.ADVANCED, sport="athletics")
        athlete.award_badge("Rising Star", "")

        (entry,) = build_leaderboard([athlete])
        assert entry.rank == 1
        assert entry.account_id == str(athlete.id)
        assert entry.points == 170
        assert entry.level == "advanced"
        assert entry.badge_count == 1
        assert entry.specialization == "athletics"

    def test_leaderboard_limit(self):
        athletes = [make_athlete(name=f"Runner {i}", email=f"r{i}@example.com", points=i) for i in range(5)]
        board = build_leaderboard(athletes, limit=3)
        assert [e.points for e in board] == [4, 3, 2]
        assert [e.rank for e in board] == [1, 2, 3]

    def test_platform_stats(self):
        accounts = [
            make_athlete(email="k1@example.com", state="Karnataka", points=30, is_verified=True),
            make_athlete(email="k2@example.com", state="Karnataka", points=90),
            make_athlete(email="m1@example.com", state="Maharashtra", is_active=False),
            Coach(name="Ravi K", email="ravi@example.com", state="Kerala"),
            Official(name="Meera S", email="meera@example.com", access_level=AccessLevel.ADMIN),
        ]
        stats = platform_stats(accounts)

        assert stats.total_users == 5
        assert stats.active_users == 4
        assert stats.verified_users == 1
        assert stats.users_by_type == {"athlete": 3, "coach": 1, "sai_official": 1}
        # Only athletes count towards the state breakdown
        assert stats.users_by_state == [("Karnataka", 2), ("Maharashtra", 1)]
        assert [a.points for a in stats.top_performers] == [90, 30, 0]
