"""Analysis history of finished sessions."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from photo_health.domain.analysis import AnalysisResult, RiskLevel
from photo_health.domain.comparison import ComparisonResult
from photo_health.domain.history import HistoryExport, HistoryRecord
from photo_health.services.comparison import compare_analyses

logger = logging.getLogger(__name__)

RISK_LABELS: dict[RiskLevel, str] = {
    "low": "low risk",
    "medium": "medium risk",
    "high": "high risk",
    "critical": "critical",
}
SUMMARY_OBSERVATIONS = 2


class HistoryRepository(Protocol):
    """Storage interface for history records."""

    def add(self, record: HistoryRecord) -> None:
        """Store a record."""

    def list_records(self, limit: int | None = None) -> list[HistoryRecord]:
        """Return records, newest first."""

    def list_by_scene(self, scene_id: str) -> list[HistoryRecord]:
        """Return records of one scene, newest first."""

    def delete(self, record_id: UUID) -> bool:
        """Delete a record; return True if it existed."""

    def clear(self) -> None:
        """Delete every record."""

    def trim(self, max_records: int) -> int:
        """Keep only the newest records; return how many were removed."""


@dataclass
class InMemoryHistoryRepository(HistoryRepository):
    """In-process history repository."""

    _records: dict[UUID, HistoryRecord]

    def __init__(self) -> None:
        self._records = {}

    def add(self, record: HistoryRecord) -> None:
        """Store a record."""
        self._records[record.id] = record

    def list_records(self, limit: int | None = None) -> list[HistoryRecord]:
        """Return records, newest first."""
        records = sorted(
            self._records.values(), key=lambda record: record.timestamp, reverse=True
        )
        return records if limit is None else records[:limit]

    def list_by_scene(self, scene_id: str) -> list[HistoryRecord]:
        """Return records of one scene, newest first."""
        return [
            record for record in self.list_records() if record.scene_id == scene_id
        ]

    def delete(self, record_id: UUID) -> bool:
        """Delete a record; return True if it existed."""
        return self._records.pop(record_id, None) is not None

    def clear(self) -> None:
        """Delete every record."""
        self._records.clear()

    def trim(self, max_records: int) -> int:
        """Keep only the newest records; return how many were removed."""
        stale = self.list_records()[max_records:]
        for record in stale:
            del self._records[record.id]
        return len(stale)


@dataclass
class HistoryService:
    """Keeps a capped, newest-first history of finished analyses."""

    repository: HistoryRepository
    max_records: int = 100

    def record(self, result: AnalysisResult, scene_name: str) -> HistoryRecord:
        """Store a summary of a finished analysis result."""
        record = HistoryRecord(
            id=uuid4(),
            analysis_id=result.id,
            scene_id=result.scene_id,
            scene_name=scene_name,
            timestamp=result.timestamp,
            summary=summarize(result),
            risk_level=result.risk_assessment.level,
            requires_manual_review=result.requires_manual_review,
            has_followup=any(
                recommendation.type == "followup"
                for recommendation in result.recommendations
            ),
            observation_count=len(result.image_analysis.observations),
            confidence=result.confidence,
            features=list(result.image_analysis.features),
        )
        self.repository.add(record)
        removed = self.repository.trim(self.max_records)
        if removed:
            logger.info("Trimmed %s old history records", removed)
        return record

    def recent(self, limit: int = 10) -> list[HistoryRecord]:
        """Return the newest records."""
        return self.repository.list_records(limit)

    def by_scene(self, scene_id: str) -> list[HistoryRecord]:
        """Return the records of one scene."""
        return self.repository.list_by_scene(scene_id)

    def compare(self, scene_id: str, limit: int | None = None) -> ComparisonResult:
        """Compare the newest analyses of one scene."""
        records = self.by_scene(scene_id)
        if limit is not None:
            records = records[:limit]
        return compare_analyses(records)

    def delete(self, record_id: UUID) -> bool:
        """Delete a record; return True if it existed."""
        return self.repository.delete(record_id)

    def clear(self) -> None:
        """Delete the whole history."""
        self.repository.clear()
        logger.info("History cleared")

    def export_json(self) -> str:
        """Serialize the full history to a JSON document."""
        document = HistoryExport(
            exported_at=datetime.now(tz=UTC),
            records=self.repository.list_records(),
        )
        return document.model_dump_json(indent=2)

    def import_json(self, payload: str) -> int:
        """Merge records from an exported document; return how many were added.

        Records whose id is already present are skipped. Raises
        ``pydantic.ValidationError`` for malformed documents.
        """
        document = HistoryExport.model_validate_json(payload)
        known = {record.id for record in self.repository.list_records()}
        added = 0
        for record in document.records:
            if record.id in known:
                continue
            self.repository.add(record)
            known.add(record.id)
            added += 1
        self.repository.trim(self.max_records)
        logger.info("Imported %s history records", added)
        return added


def summarize(result: AnalysisResult) -> str:
    """Build a one-line summary from the leading observations and the risk."""
    parts = list(result.image_analysis.observations[:SUMMARY_OBSERVATIONS])
    parts.append(RISK_LABELS[result.risk_assessment.level])
    return "; ".join(parts)
