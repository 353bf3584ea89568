"""
Severity classification for blood-pressure and heart-rate readings.

Systolic and diastolic values are graded independently and the worse grade
wins. Diastolic has no "elevated" tier, so 125/70 is elevated while 118/85 is
stage 1. Everything here is pure and synchronous.
"""

from pulsealert.domain.models import BloodPressureReading, BPCategory, BPStatus, HeartRateAlert

HIGH_HEART_RATE_BPM = 120
IRREGULAR_LOW_BPM = 40
IRREGULAR_HIGH_BPM = 180

STATUS_MESSAGES: dict[BPCategory, str] = {
    BPCategory.NORMAL: "Normal",
    BPCategory.ELEVATED: "Elevated",
    BPCategory.STAGE1: "High Blood Pressure (Stage 1)",
    BPCategory.STAGE2: "High Blood Pressure (Stage 2)",
    BPCategory.CRISIS: "Hypertensive Crisis",
}

BP_ALERT_TITLES: dict[BPCategory, str] = {
    BPCategory.ELEVATED: "Elevated Blood Pressure",
    BPCategory.STAGE1: "Hypertension Stage 1",
    BPCategory.STAGE2: "Hypertension Stage 2",
    BPCategory.CRISIS: "Hypertensive Crisis",
}

_BP_ALERT_SUFFIX: dict[BPCategory, str] = {
    BPCategory.ELEVATED: "Elevated",
    BPCategory.STAGE1: "Stage 1",
    BPCategory.STAGE2: "Stage 2",
    BPCategory.CRISIS: "Crisis",
}

_BP_ALERT_ADVICE: dict[BPCategory, str] = {
    BPCategory.ELEVATED: "Monitor and try to relax.",
    BPCategory.STAGE1: "Consider contacting your doctor.",
    BPCategory.STAGE2: "Seek medical attention if symptoms occur.",
    BPCategory.CRISIS: "Seek immediate medical help!",
}

HIGH_HEART_RATE_TITLE = "High Heart Rate"
IRREGULAR_HEARTBEAT_TITLE = "Irregular Heartbeat"


def classify_systolic(systolic: int) -> BPCategory:
    if systolic >= 180:
        return BPCategory.CRISIS
    if systolic >= 140:
        return BPCategory.STAGE2
    if systolic >= 130:
        return BPCategory.STAGE1
    if systolic >= 120:
        return BPCategory.ELEVATED
    return BPCategory.NORMAL


def classify_diastolic(diastolic: int) -> BPCategory:
    if diastolic >= 120:
        return BPCategory.CRISIS
    if diastolic >= 90:
        return BPCategory.STAGE2
    if diastolic >= 80:
        return BPCategory.STAGE1
    return BPCategory.NORMAL


def classify(systolic: int, diastolic: int) -> BPStatus:
    """Classify a reading as the more severe of its systolic and diastolic grades."""
    category = max(classify_systolic(systolic), classify_diastolic(diastolic), key=lambda c: c.rank)
    return BPStatus(category=category, message=STATUS_MESSAGES[category], severity_rank=category.rank)


def classify_heart_rate(
    bpm: int,
    high_bpm: int = HIGH_HEART_RATE_BPM,
    irregular_low_bpm: int = IRREGULAR_LOW_BPM,
    irregular_high_bpm: int = IRREGULAR_HIGH_BPM,
) -> list[HeartRateAlert]:
    """
    Threshold checks for one heart-rate sample.

    The checks are not exclusive: 185 bpm is both high and irregular.
    """
    alerts: list[HeartRateAlert] = []
    if bpm > high_bpm:
        alerts.append(HeartRateAlert.HIGH)
    if bpm < irregular_low_bpm or bpm > irregular_high_bpm:
        alerts.append(HeartRateAlert.IRREGULAR)
    return alerts


def bp_alert_for(reading: BloodPressureReading) -> tuple[str, str] | None:
    """Title and message for a reading that warrants an alert, None when normal."""
    category = classify(reading.systolic, reading.diastolic).category
    if category is BPCategory.NORMAL:
        return None

    message = (
        f"{reading.systolic}/{reading.diastolic} mmHg - {_BP_ALERT_SUFFIX[category]}. "
        f"{_BP_ALERT_ADVICE[category]}"
    )
    return BP_ALERT_TITLES[category], message


def heart_rate_alert_for(alert: HeartRateAlert, bpm: int, source: str | None = None) -> tuple[str, str]:
    if alert is HeartRateAlert.HIGH:
        suffix = f" ({source})" if source else ""
        return HIGH_HEART_RATE_TITLE, f"Heart rate {bpm} bpm{suffix}"
    return IRREGULAR_HEARTBEAT_TITLE, f"Potential irregular heartbeat detected: {bpm} bpm"


def get_bp_recommendations(systolic: int, diastolic: int) -> list[str]:
    """Lifestyle guidance matching a reading's category."""
    category = classify(systolic, diastolic).category

    if category is BPCategory.NORMAL:
        return [
            "Your blood pressure is in a healthy range. Keep up your good habits!",
            "Continue regular exercise and a balanced diet.",
        ]
    if category is BPCategory.ELEVATED:
        return [
            "Try relaxation techniques like deep breathing or meditation.",
            "Reduce sodium intake and increase physical activity.",
            "Limit caffeine and alcohol consumption.",
        ]
    if category is BPCategory.STAGE1:
        return [
            "Monitor your blood pressure regularly (daily if possible).",
            "Consult your doctor about lifestyle changes or medication.",
            "Reduce stress through exercise, yoga, or counseling.",
            "Limit sodium, maintain healthy weight, and avoid smoking.",
        ]

    recommendations = [
        "Seek medical attention as soon as possible.",
        "Do not engage in strenuous activities.",
        "Follow your doctor's treatment plan closely.",
        "Monitor blood pressure multiple times daily.",
    ]
    if category is BPCategory.CRISIS:
        recommendations.append(
            "Call emergency services if experiencing symptoms like severe headache, "
            "chest pain, or vision changes."
        )
    return recommendations
