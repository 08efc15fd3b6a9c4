"""Anomaly Detector — deviations of one entry from historical behaviour.

Deterministic engine: six statistical checks against owner, project and team
history. Every check has a minimum history size; when it is not met the
check does not run and ``analyze`` lists it under ``skipped_checks``
instead of guessing from a small sample.

Detections below the confidence floor (0.6, or the profile's
``anomaly_confidence``) are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from timetrust.cache import AggregationCache
from timetrust.engines.anomaly.baselines import (
    AggregateFilter,
    aggregate_by_date,
    is_micro,
    mean,
    most_recent,
    owner_baseline,
    project_baseline,
    pstdev,
    require_history,
    start_hours,
    team_baseline,
)
from timetrust.engines.intervals import is_parseable, start_hour
from timetrust.exceptions import InsufficientHistoryError
from timetrust.models.anomaly import (
    AnomalyBaseline,
    AnomalyDetection,
    AnomalyReport,
    FindingSeverity,
    SkippedCheck,
)
from timetrust.models.entry import TimeInterval
from timetrust.models.strictness import StrictnessProfile

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_FLOOR = 0.6

# Minimum history per check
MIN_OWNER_TIME_OF_DAY = 5
MIN_PROJECT_TIME_OF_DAY = 3
MIN_DURATION_MATCHES = 3
MIN_OWNER_MICRO = 10
MIN_OWNER_FREQUENCY = 5
MIN_OWNER_SWITCHING = 10
MIN_TEAM_DEVIATION = 20
MIN_OWNER_TEAM_DEVIATION = 5

RECENT_WINDOW = 20


def _has_history(
    check: str,
    samples: Sequence,
    minimum: int,
    skipped: list[SkippedCheck],
    scope: str = "owner",
) -> bool:
    """Record a SkippedCheck and return False when ``samples`` is too small."""
    try:
        require_history(check, samples, minimum)
    except InsufficientHistoryError as exc:
        skipped.append(SkippedCheck(
            check=exc.check, required=exc.required, available=exc.available, scope=scope,
        ))
        return False
    return True


class AnomalyDetector:
    """Runs the six anomaly checks for one entry.

    Checks:
    1. time_of_day — start hour vs project mean and owner's personal spread
    2. duration — z-score against same project+task history
    3. micro_entries — share of ≤15 min entries among the last 20
    4. frequency — today's entry count vs the owner's daily average
    5. project_switching — distinct projects among the last 20 entries
    6. deviation_from_team — owner mean duration vs team mean
    """

    def __init__(
        self,
        profile: StrictnessProfile | None = None,
        confidence_floor: float | None = None,
        cache: AggregationCache | None = None,
    ) -> None:
        self._profile = profile
        if profile is not None:
            self.confidence_floor = profile.thresholds.anomaly_confidence
        elif confidence_floor is not None:
            self.confidence_floor = confidence_floor
        else:
            self.confidence_floor = DEFAULT_CONFIDENCE_FLOOR
        self._cache = cache

    def detect(
        self,
        entry: TimeInterval,
        owner_history: Sequence[TimeInterval],
        project_history: Sequence[TimeInterval] = (),
        team_history: Sequence[TimeInterval] = (),
    ) -> list[AnomalyDetection]:
        """Detections at or above the confidence floor."""
        return self.analyze(entry, owner_history, project_history, team_history).detections

    def analyze(
        self,
        entry: TimeInterval,
        owner_history: Sequence[TimeInterval],
        project_history: Sequence[TimeInterval] = (),
        team_history: Sequence[TimeInterval] = (),
    ) -> AnomalyReport:
        """Run every check and report detections plus skipped checks.

        Args:
            entry: The entry under analysis. Its own id is excluded from all
                histories.
            owner_history: Previous entries of the entry's owner.
            project_history: Entries of any owner (filtered to the project here).
            team_history: Entries of the owner's team.
        """
        owner = [e for e in owner_history if e.id != entry.id]
        project = [e for e in project_history if e.id != entry.id]
        team = [e for e in team_history if e.id != entry.id]

        detections: list[AnomalyDetection] = []
        skipped: list[SkippedCheck] = []

        detections.extend(self._check_time_of_day(entry, owner, project, skipped))
        detections.extend(self._check_duration(entry, project, skipped))
        detections.extend(self._check_micro_entries(entry, owner, skipped))
        detections.extend(self._check_frequency(entry, owner, skipped))
        detections.extend(self._check_project_switching(owner, skipped))
        detections.extend(self._check_team_deviation(owner, team, skipped))

        kept = [d for d in detections if d.confidence >= self.confidence_floor]
        logger.debug(
            "Anomalies for %s: %d detected, %d kept, %d checks skipped",
            entry.id, len(detections), len(kept), len(skipped),
        )
        return AnomalyReport(
            entry_id=entry.id,
            detections=kept,
            skipped_checks=skipped,
            confidence_floor=self.confidence_floor,
        )

    # === Checks ===

    @staticmethod
    def _check_time_of_day(
        entry: TimeInterval,
        owner: list[TimeInterval],
        project: list[TimeInterval],
        skipped: list[SkippedCheck],
    ) -> list[AnomalyDetection]:
        if not is_parseable(entry):
            return []
        owner_hours = start_hours(owner)
        if not _has_history("time_of_day", owner_hours, MIN_OWNER_TIME_OF_DAY, skipped):
            return []

        results: list[AnomalyDetection] = []
        current = start_hour(entry)
        project_hours = start_hours(e for e in project if e.project_id == entry.project_id)

        if _has_history(
            "time_of_day", project_hours, MIN_PROJECT_TIME_OF_DAY, skipped, scope="project",
        ):
            avg_project = mean(project_hours)
            deviation = abs(current - avg_project)
            if deviation >= 4:
                profile = project_baseline(project, entry.project_id)
                severity: FindingSeverity = "info"
                if current >= 22 or current <= 5:
                    severity = "warning"
                if deviation >= 8:
                    severity = "critical"
                typical = round(avg_project)
                results.append(AnomalyDetection(
                    type="time_of_day",
                    severity=severity,
                    title="Unusual time of day for this project",
                    description=(
                        f"Project {entry.project_id} is usually booked around "
                        f"{typical}:00, this entry starts at {current}:00"
                    ),
                    evidence=[
                        f"{len(project_hours)} earlier project entries analyzed",
                        f"Average start: {typical}:00",
                        "Most common starts: "
                        + ", ".join(f"{h}:00" for h in profile.typical_start_hours),
                        f"Deviation: {deviation:.1f} hours",
                    ],
                    baseline=AnomalyBaseline(
                        metric="start time", typical=f"{typical}:00", current=f"{current}:00",
                    ),
                    confidence=min(0.9, 0.6 + deviation / 12),
                ))

        avg_owner = mean(owner_hours)
        spread = pstdev(owner_hours)
        if abs(current - avg_owner) > 2 * spread:
            results.append(AnomalyDetection(
                type="time_of_day",
                severity="info",
                title="Deviation from personal working hours",
                description=(
                    f"Usually starts around {round(avg_owner)}:00, "
                    f"this entry starts at {current}:00"
                ),
                evidence=[
                    f"{len(owner_hours)} entries analyzed",
                    f"Standard deviation: {spread:.1f} hours",
                ],
                baseline=AnomalyBaseline(
                    metric="personal start time",
                    typical=f"{round(avg_owner)}:00",
                    current=f"{current}:00",
                ),
                confidence=0.7,
            ))
        return results

    def _check_duration(
        self,
        entry: TimeInterval,
        project: list[TimeInterval],
        skipped: list[SkippedCheck],
    ) -> list[AnomalyDetection]:
        matches = [
            e for e in project
            if e.project_id == entry.project_id
            and (not entry.task_id or e.task_id == entry.task_id)
        ]
        if not _has_history("duration", matches, MIN_DURATION_MATCHES, skipped, scope="project"):
            return []

        durations = [e.duration for e in matches]
        avg = mean(durations)
        spread = pstdev(durations)
        deviation = abs(entry.duration - avg)
        z_score = deviation / spread if spread > 0 else 0.0
        if z_score <= 2:
            return []
        if self._profile is not None and avg > 0:
            if deviation / avg < self._profile.thresholds.duration_deviation:
                return []

        severity: FindingSeverity = "info"
        if z_score > 3:
            severity = "warning"
        if z_score > 4:
            severity = "critical"
        scope = f"task {entry.task_id}" if entry.task_id else f"project {entry.project_id}"
        return [AnomalyDetection(
            type="duration",
            severity=severity,
            title="Unusual duration for this activity",
            description=f"{scope} usually takes {avg:.1f}h, this entry {entry.duration:g}h",
            evidence=[
                f"{len(matches)} earlier entries analyzed",
                f"Average duration: {avg:.1f}h",
                f"Standard deviation: {spread:.1f}h",
                f"Z-score: {z_score:.2f}",
            ],
            baseline=AnomalyBaseline(
                metric="duration", typical=f"{avg:.1f}h", current=f"{entry.duration:g}h",
            ),
            confidence=min(0.95, 0.7 + z_score / 10),
        )]

    @staticmethod
    def _check_micro_entries(
        entry: TimeInterval, owner: list[TimeInterval], skipped: list[SkippedCheck],
    ) -> list[AnomalyDetection]:
        if not _has_history("micro_entries", owner, MIN_OWNER_MICRO, skipped):
            return []

        recent = most_recent(owner, RECENT_WINDOW)
        share = owner_baseline(recent).micro_entry_share
        micro = round(share * len(recent))
        if not is_micro(entry) or share < 0.3:
            return []
        return [AnomalyDetection(
            type="micro_entries",
            severity="warning",
            title="Many micro-entries",
            description=f"{share:.0%} of recent entries are under 15 minutes",
            evidence=[
                f"{micro} of {len(recent)} entries under 15 minutes",
                "Consider recording related work as one entry",
            ],
            baseline=AnomalyBaseline(
                metric="micro-entries", typical="< 10%", current=f"{share:.0%}",
            ),
            confidence=0.85,
        )]

    def _check_frequency(
        self, entry: TimeInterval, owner: list[TimeInterval], skipped: list[SkippedCheck],
    ) -> list[AnomalyDetection]:
        if not _has_history("frequency", owner, MIN_OWNER_FREQUENCY, skipped):
            return []

        per_day = aggregate_by_date(
            owner, AggregateFilter(owner_ids=(entry.owner_id,)), self._cache,
        )
        if not per_day:
            return []
        avg_per_day = mean([agg.entries for agg in per_day.values()])
        today = (per_day[entry.date].entries if entry.date in per_day else 0) + 1
        if today < avg_per_day * 2.5 or today < 8:
            return []
        return [AnomalyDetection(
            type="frequency",
            severity="info",
            title="Unusually many entries today",
            description=f"{today} entries today, usually {avg_per_day:.1f} per day",
            evidence=[
                f"Entries today: {today}",
                f"Average: {avg_per_day:.1f} entries/day",
                "Many small entries could be merged",
            ],
            baseline=AnomalyBaseline(
                metric="entries per day", typical=f"{avg_per_day:.1f}", current=str(today),
            ),
            confidence=0.75,
        )]

    @staticmethod
    def _check_project_switching(
        owner: list[TimeInterval], skipped: list[SkippedCheck],
    ) -> list[AnomalyDetection]:
        if not _has_history("project_switching", owner, MIN_OWNER_SWITCHING, skipped):
            return []

        recent = most_recent(owner, RECENT_WINDOW)
        unique = len({e.project_id for e in recent})
        rate = unique / len(recent)
        if rate <= 0.6:
            return []
        return [AnomalyDetection(
            type="project_switching",
            severity="info",
            title="Frequent project switching",
            description=f"{unique} different projects in the last {len(recent)} entries",
            evidence=[
                f"{unique} projects in {len(recent)} entries",
                f"Switch rate: {rate:.0%}",
                "Frequent context switches can hurt productivity",
            ],
            baseline=AnomalyBaseline(
                metric="project switching", typical="< 40%", current=f"{rate:.0%}",
            ),
            confidence=0.7,
        )]

    @staticmethod
    def _check_team_deviation(
        owner: list[TimeInterval], team: list[TimeInterval], skipped: list[SkippedCheck],
    ) -> list[AnomalyDetection]:
        if not _has_history(
            "deviation_from_team", team, MIN_TEAM_DEVIATION, skipped, scope="team",
        ):
            return []
        if not _has_history("deviation_from_team", owner, MIN_OWNER_TEAM_DEVIATION, skipped):
            return []

        team_avg = team_baseline(team).avg_duration
        owner_avg = owner_baseline(owner).avg_duration
        if team_avg <= 0:
            return []
        pct = abs(owner_avg - team_avg) / team_avg * 100
        if pct <= 40:
            return []
        direction = "longer" if owner_avg > team_avg else "shorter"
        return [AnomalyDetection(
            type="deviation_from_team",
            severity="info",
            title="Deviation from team average",
            description=(
                f"Average entry duration ({owner_avg:.1f}h) is {pct:.0f}% {direction} "
                f"than the team average ({team_avg:.1f}h)"
            ),
            evidence=[
                f"Team average: {team_avg:.1f}h",
                f"Personal average: {owner_avg:.1f}h",
                f"Deviation: {pct:.0f}% ({direction})",
                f"Based on {len(team)} team entries",
            ],
            baseline=AnomalyBaseline(
                metric="average duration",
                typical=f"{team_avg:.1f}h (team)",
                current=f"{owner_avg:.1f}h",
            ),
            confidence=0.65,
        )]
