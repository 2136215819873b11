"""
Server-side pose rule checker.

Works on MediaPipe Pose output: 33 landmarks per frame with coordinates
normalised to the image (x right, y down, both 0-1). Each rule is a
predicate returning True when the frame breaks the rule.

Only the sprint rules have real checks. The remaining catalog rules have
placeholders that never fire, so sessions for those sports record
attempts without violations until proper checks are written.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .models import MAX_VIOLATIONS_PER_ATTEMPT, Severity, Violation
from .rules import GestureRule, rules_for

POSE_LANDMARK_COUNT = 33

LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_ELBOW = 13
LEFT_WRIST = 15
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_KNEE = 25
RIGHT_KNEE = 26

# Torso angle window in degrees; outside it the athlete is too upright or too far forward
MAX_TORSO_ANGLE = 10.0
MIN_TORSO_ANGLE = -30.0
MAX_FOREARM_ANGLE = 45.0
MIN_KNEE_LIFT = 0.1


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


Landmarks = Sequence[Optional[Landmark]]
RuleCheck = Callable[[Landmarks], bool]


def _get(landmarks: Landmarks, *indices: int) -> Optional[list[Landmark]]:
    """The requested landmarks, or None if any of them is missing."""
    points = []
    for index in indices:
        if index >= len(landmarks) or landmarks[index] is None:
            return None
        points.append(landmarks[index])
    return points


def check_proper_stance(landmarks: Landmarks) -> bool:
    points = _get(landmarks, LEFT_SHOULDER, RIGHT_SHOULDER, LEFT_HIP, RIGHT_HIP)
    if points is None:
        return False
    left_shoulder, right_shoulder, left_hip, right_hip = points

    shoulder_x = (left_shoulder.x + right_shoulder.x) / 2
    shoulder_y = (left_shoulder.y + right_shoulder.y) / 2
    hip_x = (left_hip.x + right_hip.x) / 2
    hip_y = (left_hip.y + right_hip.y) / 2

    torso = math.degrees(math.atan2(shoulder_y - hip_y, shoulder_x - hip_x))
    return torso > MAX_TORSO_ANGLE or torso < MIN_TORSO_ANGLE


def check_arm_swing(landmarks: Landmarks) -> bool:
    points = _get(landmarks, LEFT_ELBOW, LEFT_WRIST)
    if points is None:
        return False
    elbow, wrist = points

    angle = math.degrees(math.atan2(wrist.y - elbow.y, wrist.x - elbow.x))
    return abs(angle) > MAX_FOREARM_ANGLE


def check_knee_lift(landmarks: Landmarks) -> bool:
    points = _get(landmarks, LEFT_HIP, RIGHT_HIP, LEFT_KNEE, RIGHT_KNEE)
    if points is None:
        return False
    left_hip, right_hip, left_knee, right_knee = points

    # y grows downwards, so a lifted knee has a smaller y than its hip
    left_lift = left_hip.y - left_knee.y
    right_lift = right_hip.y - right_knee.y
    return max(left_lift, right_lift) < MIN_KNEE_LIFT


def _never(landmarks: Landmarks) -> bool:
    return False


RULE_CHECKS: dict[str, RuleCheck] = {
    "proper_stance": check_proper_stance,
    "arm_swing": check_arm_swing,
    "knee_lift": check_knee_lift,
    "approach_angle": _never,
    "takeoff_position": _never,
    "ball_control": _never,
    "body_position": _never,
    "shooting_form": _never,
    "dribbling_posture": _never,
}


def check_for(rule_name: str) -> RuleCheck:
    return RULE_CHECKS.get(rule_name, _never)


def monitor_rules(sport: str, category: str) -> list[GestureRule]:
    """Rules a live monitor applies; sprint rules when nothing else matches."""
    return rules_for(sport, category) or rules_for("athletics", "sprint")


@dataclass
class PracticeMonitor:
    """
    Watches one attempt frame by frame.

    A frame can break several rules at once; each counts. Once the
    attempt reaches the violation limit the monitor stops and ignores
    later frames.
    """
    rules: list[GestureRule]
    attempt_number: int = 1
    max_violations: int = MAX_VIOLATIONS_PER_ATTEMPT
    violations: list[Violation] = field(default_factory=list)

    @classmethod
    def for_session(cls, sport: str, category: str, attempt_number: int = 1) -> "PracticeMonitor":
        return cls(rules=monitor_rules(sport, category), attempt_number=attempt_number)

    @property
    def stopped(self) -> bool:
        return len(self.violations) >= self.max_violations

    def evaluate(self, landmarks: Landmarks, timestamp_ms: float) -> list[Violation]:
        """Check one frame. Returns the violations this frame added."""
        found = []
        for rule in self.rules:
            if self.stopped:
                break
            if not check_for(rule.name)(landmarks):
                continue
            violation = Violation(
                attempt_number=self.attempt_number,
                timestamp_ms=timestamp_ms,
                rule_name=rule.name,
                rule_description=rule.description,
                severity=Severity.MAJOR,
            )
            self.violations.append(violation)
            found.append(violation)
        return found
