"""Vote counting and consensus across perspectives and models."""

from dataclasses import dataclass, field

from facade360.config import (
    CONFLICT_VOTE_GAP,
    PARTIAL_CONSENSUS_VOTES,
    STRONG_CONSENSUS_VOTES,
    TASKS,
)
from facade360.models import (
    NOT_FOUND,
    Conflict,
    ConsensusReport,
    FrameResult,
    PerspectiveResult,
    PredictionRecord,
    VoteCount,
)


@dataclass(frozen=True)
class ConsensusThresholds:
    """Vote counts for strong/partial consensus and the conflict gap.

    The defaults were tuned for the two-model flat mode and are applied
    unchanged to the eight votes of a 360 frame.
    """

    strong: int = STRONG_CONSENSUS_VOTES
    partial: int = PARTIAL_CONSENSUS_VOTES
    conflict_gap: int = CONFLICT_VOTE_GAP

    def __post_init__(self) -> None:
        if self.partial < 1 or self.strong < self.partial:
            raise ValueError(
                f"Expected 1 <= partial <= strong, got partial={self.partial} strong={self.strong}"
            )
        if self.conflict_gap < 0:
            raise ValueError("conflict_gap must be non-negative")


def tally_votes(
    records: list[PredictionRecord], tasks: tuple[str, ...] = TASKS
) -> dict[str, list[VoteCount]]:
    """Count votes per task, most voted first; ties keep first-seen order."""
    tallies: dict[str, list[VoteCount]] = {}
    for task in tasks:
        counts: dict[str, int] = {}
        for record in records:
            value = record.value(task)
            if value and value != NOT_FOUND:
                counts[value] = counts.get(value, 0) + 1
        # dicts keep insertion order and sorted() is stable
        ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        tallies[task] = [VoteCount(value, count) for value, count in ordered]
    return tallies


def _report_from_records(
    records: list[PredictionRecord],
    thresholds: ConsensusThresholds,
    agreement: dict[str, str] | None = None,
) -> ConsensusReport:
    strong: dict[str, VoteCount] = {}
    partial: dict[str, VoteCount] = {}
    conflicts: list[Conflict] = []

    for task, votes in tally_votes(records).items():
        if not votes:
            continue
        leader = votes[0]
        if leader.count >= thresholds.strong:
            strong[task] = leader
        elif leader.count >= thresholds.partial:
            partial[task] = leader

        if len(votes) > 1 and leader.count - votes[1].count <= thresholds.conflict_gap:
            conflicts.append(Conflict(task=task, options=(leader, votes[1])))

    return ConsensusReport(
        strong=strong,
        partial=partial,
        conflicts=tuple(conflicts),
        agreement=agreement or {},
    )


def aggregate(
    perspective_results: list[PerspectiveResult],
    thresholds: ConsensusThresholds | None = None,
) -> ConsensusReport:
    """Consensus over every (perspective x model) prediction of a frame."""
    records = [pred for p in perspective_results for pred in p.predictions]
    return _report_from_records(records, thresholds or ConsensusThresholds())


def model_agreement(
    records: list[PredictionRecord], tasks: tuple[str, ...] = TASKS
) -> dict[str, str]:
    """Tasks on which exactly two models predict the same found value."""
    if len(records) != 2:
        return {}
    first, second = records
    return {
        task: first.value(task)
        for task in tasks
        if first.value(task) == second.value(task) and first.value(task) != NOT_FOUND
    }


def aggregate_frame(
    frame: FrameResult, thresholds: ConsensusThresholds | None = None
) -> ConsensusReport:
    """Consensus for either a 360 frame or a flat two-model frame."""
    records = frame.all_predictions()
    agreement = model_agreement(records) if len(records) == 2 else None
    return _report_from_records(records, thresholds or ConsensusThresholds(), agreement)


def dominant_prediction(
    predictions: list[PredictionRecord], tasks: tuple[str, ...] = TASKS
) -> dict[str, str] | None:
    """Values on which the first two models of a perspective agree."""
    if len(predictions) < 2:
        return None
    dominant = {}
    for task in tasks:
        values = [p.value(task) for p in predictions if p.value(task) and p.value(task) != NOT_FOUND]
        if len(values) >= 2 and values[0] == values[1]:
            dominant[task] = values[0]
    return dominant or None


@dataclass
class PerspectiveSummary:
    display_name: str
    predictions: list[PredictionRecord]
    dominant: dict[str, str] | None


@dataclass
class FrameReport:
    """Structured summary of one analyzed frame."""

    frame_number: int
    timestamp_sec: float
    coordinates: tuple[float, float] | None
    perspectives_total: int
    perspectives_analyzed: int
    perspectives: dict[str, PerspectiveSummary]
    consensus: ConsensusReport
    recommendations: list[str] = field(default_factory=list)


def frame_report(
    frame: FrameResult,
    frame_number: int,
    thresholds: ConsensusThresholds | None = None,
) -> FrameReport:
    """Summarize a frame: coverage, per-perspective agreement and advice."""
    perspectives = frame.perspectives or []
    report = FrameReport(
        frame_number=frame_number,
        timestamp_sec=frame.timestamp_sec,
        coordinates=(frame.coordinates.lat, frame.coordinates.lon) if frame.coordinates else None,
        perspectives_total=len(perspectives),
        perspectives_analyzed=sum(1 for p in perspectives if p.predictions),
        perspectives={
            p.perspective_key: PerspectiveSummary(
                display_name=p.display_name,
                predictions=p.predictions,
                dominant=dominant_prediction(p.predictions),
            )
            for p in perspectives
        },
        consensus=aggregate_frame(frame, thresholds),
    )

    if len(report.consensus.strong) >= 2:
        report.recommendations.append("Strong consensus: predictions are highly reliable")
    elif report.consensus.conflicts:
        report.recommendations.append("Conflicts detected: review the disputed predictions")

    if report.perspectives_analyzed < report.perspectives_total:
        report.recommendations.append(
            "Some perspectives produced no predictions: check image quality"
        )

    for summary in report.perspectives.values():
        if summary.dominant and len(summary.dominant) >= 2:
            report.recommendations.append(f"{summary.display_name}: models agree")

    return report


def format_frame_report(report: FrameReport) -> list[str]:
    """Human-readable lines for a FrameReport."""
    lines = [f"Frame {report.frame_number} at {report.timestamp_sec:.2f}s"]
    if report.coordinates is not None:
        lines.append(f"  Location: {report.coordinates[0]:.6f}, {report.coordinates[1]:.6f}")
    if report.perspectives_total:
        lines.append(
            f"  Perspectives analyzed: "
            f"{report.perspectives_analyzed}/{report.perspectives_total}"
        )
    for task, vote in report.consensus.strong.items():
        lines.append(f"  [strong] {task}: {vote.value} ({vote.count} votes)")
    for task, vote in report.consensus.partial.items():
        lines.append(f"  [partial] {task}: {vote.value} ({vote.count} votes)")
    for conflict in report.consensus.conflicts:
        options = " vs ".join(f"{o.value} ({o.count})" for o in conflict.options)
        lines.append(f"  [conflict] {conflict.task}: {options}")
    for task, value in report.consensus.agreement.items():
        lines.append(f"  [models agree] {task}: {value}")
    lines.extend(f"  - {r}" for r in report.recommendations)
    return lines
