"""Risk fusion across the crowd, unconscious-person and stampede signals.

Pure functions: the same three detector results always produce the same
overall risk and emergency priority. SAFE / NORMAL are valid outcomes, not
errors.
"""

from __future__ import annotations

from dataclasses import dataclass

from venueguard.core.types import (
    CrowdResult,
    EmergencyPriority,
    OverallRisk,
    StampedeResult,
    Threat,
    UnconsciousResult,
)

RISK_SCALE = ("SAFE", "MINIMAL", "LOW", "MODERATE", "MEDIUM", "HIGH", "CRITICAL")

UNCONSCIOUS_THREAT_SCORE = 0.9
HIGH_DENSITY_STAMPEDE_PCT = 25.0


@dataclass(frozen=True)
class FusionResult:
    overall_risk: OverallRisk
    emergency_priority: EmergencyPriority


def _risk_index(level: str) -> int:
    try:
        return RISK_SCALE.index(level)
    except ValueError:
        return -1


def higher_risk(current: str, other: str) -> str:
    """Return the more severe of two levels on `RISK_SCALE`.

    Levels not on the scale never win.
    """

    return other if _risk_index(other) > _risk_index(current) else current


def collect_threats(
    crowd: CrowdResult,
    unconscious: UnconsciousResult,
    stampede: StampedeResult,
) -> list[Threat]:
    """Active threats in evaluation order: stampede, unconscious, overcrowding."""

    threats: list[Threat] = []
    if stampede.is_stampede:
        threats.append(
            Threat(
                type="STAMPEDE",
                severity=stampede.risk_level,
                description="Dangerous crowd movement patterns detected",
                score=stampede.stampede_score,
            )
        )
    if unconscious.unconscious_count > 0:
        threats.append(
            Threat(
                type="UNCONSCIOUS_PERSON",
                severity=unconscious.alert_level,
                description=f"{unconscious.unconscious_count} unconscious person(s) detected",
                score=UNCONSCIOUS_THREAT_SCORE,
            )
        )
    if crowd.is_overcrowded:
        threats.append(
            Threat(
                type="OVERCROWDING",
                severity=crowd.density_level,
                description=f"Overcrowded area: {crowd.density_percentage:.2f}% density",
                score=crowd.density_percentage / 100.0,
            )
        )
    return threats


def analyze_overall_risk(
    crowd: CrowdResult,
    unconscious: UnconsciousResult,
    stampede: StampedeResult,
) -> OverallRisk:
    """Combine the active threats into one level, description and action."""

    threats = collect_threats(crowd, unconscious, stampede)

    max_level = "SAFE"
    for threat in threats:
        max_level = higher_risk(max_level, threat.severity)

    level = "SAFE"
    description = "Normal conditions detected"
    action = "CONTINUE_MONITORING"

    if len(threats) == 1:
        level = max_level
        description = threats[0].description
    elif len(threats) > 1:
        # Simultaneous threats always escalate.
        level = "CRITICAL"
        description = "Multiple threats detected: " + ", ".join(t.type for t in threats)

    if stampede.is_stampede and crowd.is_overcrowded:
        action = "EMERGENCY_EVACUATION_REQUIRED"
        level = "CRITICAL"
        description = "CRITICAL: Stampede in overcrowded area"
    elif stampede.is_stampede:
        action = "CROWD_CONTROL_REQUIRED"
    elif unconscious.unconscious_count > 0:
        action = "MEDICAL_ASSISTANCE_REQUIRED"
    elif crowd.is_overcrowded:
        action = "MONITOR_CLOSELY_MANAGE_CROWD"

    return OverallRisk(
        level=level,
        description=description,
        immediate_action=action,
        threats=threats,
        risk_score=max((t.score for t in threats), default=0.0),
    )


def emergency_priority(
    crowd: CrowdResult,
    unconscious: UnconsciousResult,
    stampede: StampedeResult,
) -> EmergencyPriority:
    """Five-tier response priority; the first matching tier wins (1 = most severe)."""

    has_unconscious = unconscious.unconscious_count > 0

    if stampede.is_stampede and has_unconscious:
        return EmergencyPriority(
            level=1,
            classification="CRITICAL_EMERGENCY",
            description="Stampede with unconscious persons - Multiple casualties likely",
            response_time="IMMEDIATE",
        )
    if stampede.is_stampede and crowd.density_percentage > HIGH_DENSITY_STAMPEDE_PCT:
        return EmergencyPriority(
            level=2,
            classification="HIGH_EMERGENCY",
            description="Stampede in high-density crowd - High casualty risk",
            response_time="IMMEDIATE",
        )
    if has_unconscious or stampede.is_stampede:
        return EmergencyPriority(
            level=3,
            classification="MEDIUM_EMERGENCY",
            description=(
                "Medical emergency detected" if has_unconscious else "Crowd movement emergency"
            ),
            response_time="URGENT",
        )
    if crowd.is_overcrowded:
        return EmergencyPriority(
            level=4,
            classification="LOW_PRIORITY",
            description="Overcrowding detected - Monitor for escalation",
            response_time="STANDARD",
        )
    return EmergencyPriority(
        level=5,
        classification="NORMAL",
        description="No immediate threats detected",
        response_time="ROUTINE",
    )


def fuse(
    crowd: CrowdResult,
    unconscious: UnconsciousResult,
    stampede: StampedeResult,
) -> FusionResult:
    return FusionResult(
        overall_risk=analyze_overall_risk(crowd, unconscious, stampede),
        emergency_priority=emergency_priority(crowd, unconscious, stampede),
    )
