"""Comparison of repeated analyses of the same scene."""

from collections.abc import Sequence

from photo_health.domain.analysis import RiskLevel
from photo_health.domain.comparison import (
    ComparisonMetric,
    ComparisonResult,
    DetectedChange,
    TimelinePoint,
    TrendAnalysis,
)
from photo_health.domain.history import HistoryRecord

RISK_ORDER: tuple[RiskLevel, ...] = ("low", "medium", "high", "critical")
RISK_TEXT: dict[RiskLevel, str] = {
    "low": "Low risk",
    "medium": "Medium risk",
    "high": "High risk",
    "critical": "Critical",
}
OBSERVATION_CHANGE = 2
OBSERVATION_SIGNIFICANT = 3
FEATURE_CHANGE = 0.15
FEATURE_SIGNIFICANT = 0.3
TREND_RATIO = 1.5
MIN_COMPARED = 2
COMPARISON_METRICS: tuple[ComparisonMetric, ...] = (
    "risk",
    "observations",
    "confidence",
)
DISCLAIMER = "This report is for reference only and is not a medical diagnosis."
_SUMMARY_SECTIONS = (("Improved", "improved"), ("Needs attention", "worsened"))


def compare_analyses(records: Sequence[HistoryRecord]) -> ComparisonResult:
    """Compare the earliest and latest of several analyses.

    Fewer than two records yield a stable trend with zero confidence.
    """
    ordered = sorted(records, key=lambda record: record.timestamp)
    if len(ordered) < MIN_COMPARED:
        return ComparisonResult(
            records=ordered,
            summary="At least two analyses are needed for a comparison.",
        )
    changes = detect_changes(ordered[0], ordered[-1])
    trend = analyze_trend(len(ordered), changes)
    return ComparisonResult(
        records=ordered,
        changes=changes,
        trend=trend,
        summary=_summary(ordered, changes, trend),
    )


def detect_changes(first: HistoryRecord, last: HistoryRecord) -> list[DetectedChange]:
    """Return risk, observation-count and feature-confidence changes."""
    changes = []
    first_risk = RISK_ORDER.index(first.risk_level)
    last_risk = RISK_ORDER.index(last.risk_level)
    if first_risk != last_risk:
        changes.append(
            DetectedChange(
                feature="Risk level",
                from_value=RISK_TEXT[first.risk_level],
                to_value=RISK_TEXT[last.risk_level],
                direction="improved" if last_risk < first_risk else "worsened",
                significance=(
                    "significant" if abs(last_risk - first_risk) >= 2 else "moderate"
                ),
            )
        )

    delta = last.observation_count - first.observation_count
    if abs(delta) >= OBSERVATION_CHANGE:
        large = abs(delta) >= OBSERVATION_SIGNIFICANT
        changes.append(
            DetectedChange(
                feature="Number of findings",
                from_value=str(first.observation_count),
                to_value=str(last.observation_count),
                direction="improved" if delta < 0 else "worsened",
                significance="significant" if large else "moderate",
            )
        )

    latest = {feature.type: feature for feature in last.features}
    for feature in first.features:
        match = latest.get(feature.type)
        if match is None:
            continue
        difference = match.confidence - feature.confidence
        if abs(difference) <= FEATURE_CHANGE:
            continue
        large = abs(difference) > FEATURE_SIGNIFICANT
        changes.append(
            DetectedChange(
                feature=feature.label,
                from_value=f"{round(feature.confidence * 100)}%",
                to_value=f"{round(match.confidence * 100)}%",
                direction="improved" if difference > 0 else "worsened",
                significance="significant" if large else "moderate",
            )
        )
    return changes


def analyze_trend(
    record_count: int, changes: Sequence[DetectedChange]
) -> TrendAnalysis:
    """Weigh improvements against deteriorations."""
    if record_count < MIN_COMPARED:
        return TrendAnalysis()
    improved = sum(1 for change in changes if change.direction == "improved")
    worsened = sum(1 for change in changes if change.direction == "worsened")
    if improved > worsened * TREND_RATIO:
        overall = "improving"
    elif worsened > improved * TREND_RATIO:
        overall = "worsening"
    else:
        overall = "stable"
    factors = []
    for change in changes:
        if change.significance != "minor" and change.feature not in factors:
            factors.append(change.feature)
    return TrendAnalysis(
        overall=overall,
        confidence=round(min(0.95, record_count * 0.15 + 0.3), 2),
        factors=factors,
    )


def generate_timeline(records: Sequence[HistoryRecord]) -> list[TimelinePoint]:
    """Return one timeline point per record, in the given order."""
    return [
        TimelinePoint(
            date=record.timestamp.date(),
            risk_level=RISK_ORDER.index(record.risk_level) + 1,
            observation_count=record.observation_count,
            confidence=record.confidence,
        )
        for record in records
    ]


def change_percentage(
    records: Sequence[HistoryRecord], metric: ComparisonMetric
) -> float:
    """Percentage change of a metric from the earliest to the latest record."""
    if len(records) < MIN_COMPARED:
        return 0.0
    ordered = sorted(records, key=lambda record: record.timestamp)
    first_value = _metric(ordered[0], metric)
    last_value = _metric(ordered[-1], metric)
    if first_value == 0:
        return 100.0 if last_value > 0 else 0.0
    return (last_value - first_value) / first_value * 100


def comparison_report(comparison: ComparisonResult) -> str:
    """Render a plain-text comparison report."""
    lines = ["Health comparison report", "", comparison.summary, ""]
    if comparison.changes:
        lines.append("Changes:")
        for change in comparison.changes:
            lines.append(
                f"- {change.feature}: {change.from_value} -> {change.to_value} "
                f"({change.direction}, {change.significance})"
            )
        lines.append("")
    lines.append(f"Overall trend: {comparison.trend.overall}")
    lines.append(f"Confidence: {round(comparison.trend.confidence * 100)}%")
    lines.append("")
    lines.append("Analyses:")
    for index, record in enumerate(comparison.records, start=1):
        lines.append(
            f"{index}. {record.timestamp:%Y-%m-%d %H:%M} "
            f"{RISK_TEXT[record.risk_level]}, {record.observation_count} findings"
        )
    lines.extend(["", DISCLAIMER])
    return "\n".join(lines)


def _metric(record: HistoryRecord, metric: ComparisonMetric) -> float:
    if metric == "risk":
        return RISK_ORDER.index(record.risk_level)
    if metric == "observations":
        return record.observation_count
    return record.confidence


def _summary(
    records: Sequence[HistoryRecord],
    changes: Sequence[DetectedChange],
    trend: TrendAnalysis,
) -> str:
    first_date = records[0].timestamp.date().isoformat()
    last_date = records[-1].timestamp.date().isoformat()
    lines = [f"Compared {len(records)} analyses from {first_date} to {last_date}."]
    if not changes:
        lines.append("No notable changes over this period.")
    else:
        lines.append(f"Detected {len(changes)} changes.")
        for label, direction in _SUMMARY_SECTIONS:
            moved = [change for change in changes if change.direction == direction]
            if moved:
                lines.append(f"{label}:")
                lines.extend(
                    f"- {change.feature}: {change.from_value} -> {change.to_value}"
                    for change in moved
                )
    lines.append(
        f"Overall {trend.overall} (confidence {round(trend.confidence * 100)}%)."
    )
    if trend.factors:
        lines.append("Main factors: " + ", ".join(trend.factors))
    return "\n".join(lines)
