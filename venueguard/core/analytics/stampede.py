"""Stampede (panic movement) detection.

Compares person box centers between consecutive frames of one camera, scores
the instantaneous movement, and adjusts the score from the trend of the last
few frames. The detector is stateful and must be scoped to one
camera-processing session: create a fresh instance or call `reset()` before
feeding an unrelated video source.
"""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from venueguard.core.types import Detection, MovementStats, StampedeResult, TemporalPattern

STAMPEDE_THRESHOLD = 0.6
HIGH_MOVEMENT_PX = 50.0
# Matches farther apart than this are treated as different people.
MAX_MATCH_DISTANCE_PX = 200.0
HISTORY_SIZE = 5
TREND_WINDOW = 3
SUSTAINED_SCORE = 0.3

ESCALATION_BOOST = 0.2
SUSTAINED_BOOST = 0.15
CALMING_PENALTY = 0.1


@dataclass
class InstantAnalysis:
    """Movement score for one frame pair."""

    score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    avg_movement: float = 0.0
    high_movement_ratio: float = 0.0


def center_distance(a: Detection, b: Detection) -> float:
    (ax, ay), (bx, by) = a.center, b.center
    return math.hypot(ax - bx, ay - by)


def stampede_risk_level(score: float) -> str:
    if score > 0.8:
        return "CRITICAL"
    if score > 0.6:
        return "HIGH"
    if score > 0.4:
        return "MEDIUM"
    if score > 0.2:
        return "LOW"
    return "MINIMAL"


def analyze_movements(movements: Sequence[float], person_count: int) -> InstantAnalysis:
    """Score one frame's per-person movements (pixels)."""

    if not movements:
        return InstantAnalysis()

    avg = sum(movements) / len(movements)
    high_count = sum(1 for m in movements if m > HIGH_MOVEMENT_PX)
    ratio = high_count / len(movements)
    result = InstantAnalysis(avg_movement=avg, high_movement_ratio=ratio)

    if avg > 80:
        result.score += 0.4
        result.reasons.append("EXTREMELY_HIGH_MOVEMENT")
    elif avg > 50:
        result.score += 0.3
        result.reasons.append("HIGH_AVERAGE_MOVEMENT")
    elif avg > 30:
        result.score += 0.2
        result.reasons.append("MODERATE_MOVEMENT")

    if ratio > 0.7:
        result.score += 0.4
        result.reasons.append("MAJORITY_RAPID_MOVEMENT")
    elif ratio > 0.5:
        result.score += 0.3
        result.reasons.append("SIGNIFICANT_RAPID_MOVEMENT")
    elif ratio > 0.3:
        result.score += 0.2
        result.reasons.append("SOME_RAPID_MOVEMENT")

    if person_count > 10 and avg > 30:
        result.score += 0.2
        result.reasons.append("LARGE_CROWD_WITH_MOVEMENT")

    return result


def temporal_pattern(scores: Sequence[float]) -> TemporalPattern:
    """Classify the trend of the most recent instant scores."""

    if len(scores) < TREND_WINDOW:
        return TemporalPattern(trend="INSUFFICIENT_DATA")

    a, b, c = scores[-TREND_WINDOW:]
    escalating = c > b > a
    calming = c < b < a
    sustained = all(s > SUSTAINED_SCORE for s in (a, b, c))

    if escalating:
        trend = "ESCALATING"
    elif calming:
        trend = "CALMING"
    elif sustained:
        trend = "SUSTAINED_HIGH"
    else:
        trend = "STABLE"

    return TemporalPattern(
        trend=trend,
        sustained_movement=sustained,
        avg_recent_score=round((a + b + c) / 3.0, 3),
        is_escalating=escalating,
        is_calming=calming,
    )


class StampedeDetector:
    """Per-camera stampede detector with a short rolling score history."""

    def __init__(self, history_size: int = HISTORY_SIZE) -> None:
        if history_size < TREND_WINDOW:
            raise ValueError(f"history_size must be >= {TREND_WINDOW}")
        self.history_size = history_size
        self._previous: list[Detection] = []
        self._history: deque[float] = deque(maxlen=history_size)

    @property
    def history(self) -> list[float]:
        return list(self._history)

    def reset(self) -> None:
        """Forget previous detections and movement history."""

        self._previous = []
        self._history.clear()

    def calculate_movements(
        self, previous: Sequence[Detection], current: Sequence[Detection]
    ) -> list[float]:
        """Distance from each current person to the nearest previous person within range."""

        movements: list[float] = []
        for person in current:
            best: float | None = None
            for prev in previous:
                d = center_distance(person, prev)
                if d < MAX_MATCH_DISTANCE_PX and (best is None or d < best):
                    best = d
            if best is not None:
                movements.append(best)
        return movements

    def detect_stampede(self, detections: Sequence[Detection]) -> StampedeResult:
        """Score the movement between the previous frame and `detections`.

        The first frame of a session (or the first after a frame with nobody
        in it) has nothing to compare against and yields a safe, zero score.
        """

        current = list(detections)
        if not self._previous:
            self._previous = current
            return safe_result()

        movements = self.calculate_movements(self._previous, current)
        instant = analyze_movements(movements, len(current))
        self._history.append(instant.score)
        pattern = temporal_pattern(list(self._history))

        score = instant.score
        reasons = list(instant.reasons)
        if pattern.is_escalating:
            score += ESCALATION_BOOST
            reasons.append("ESCALATING_MOVEMENT_PATTERN")
        if pattern.sustained_movement:
            score += SUSTAINED_BOOST
            reasons.append("SUSTAINED_HIGH_MOVEMENT")
        if pattern.is_calming:
            score = max(0.0, score - CALMING_PENALTY)
            reasons.append("MOVEMENT_CALMING_DOWN")
        score = min(1.0, score)

        self._previous = current

        is_stampede = score > STAMPEDE_THRESHOLD
        return StampedeResult(
            is_stampede=is_stampede,
            stampede_score=round(score, 3),
            risk_level=stampede_risk_level(score),
            reasons=tuple(reasons),
            alert_level="CRITICAL" if is_stampede else "SAFE",
            movement_stats=MovementStats(
                total_movements=len(movements),
                average_movement=round(instant.avg_movement, 2),
                high_movement_count=sum(1 for m in movements if m > HIGH_MOVEMENT_PX),
                person_count=len(current),
            ),
            temporal_pattern=pattern,
        )


def safe_result() -> StampedeResult:
    return StampedeResult(
        is_stampede=False,
        stampede_score=0.0,
        risk_level="MINIMAL",
        reasons=(),
        alert_level="SAFE",
        movement_stats=MovementStats(),
        temporal_pattern=TemporalPattern(trend="NO_DATA"),
    )
