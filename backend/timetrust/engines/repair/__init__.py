"""Issue detection and repair engine."""

from timetrust.engines.repair.arena import EntryArena, RepairCoordinator
from timetrust.engines.repair.issue_detector import IssueDetector
from timetrust.engines.repair.repair_engine import RepairEngine

__all__ = ["EntryArena", "IssueDetector", "RepairCoordinator", "RepairEngine"]
