"""Supabase repository for analysis history."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from photo_health.domain.analysis import DetectedFeature
from photo_health.domain.history import HistoryRecord
from photo_health.services.history import HistoryRepository

TABLE = "analysis_history"


@dataclass
class SupabaseHistoryRepository(HistoryRepository):
    """Supabase-backed history repository."""

    client: Client

    def add(self, record: HistoryRecord) -> None:
        """Insert a history row."""
        self.client.table(TABLE).upsert(_serialize(record)).execute()

    def list_records(self, limit: int | None = None) -> list[HistoryRecord]:
        """Return records, newest first."""
        query = self.client.table(TABLE).select("*").order("timestamp", desc=True)
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        return [_parse_record(row) for row in response.data or []]

    def list_by_scene(self, scene_id: str) -> list[HistoryRecord]:
        """Return records of one scene, newest first."""
        response = (
            self.client.table(TABLE)
            .select("*")
            .eq("scene_id", scene_id)
            .order("timestamp", desc=True)
            .execute()
        )
        return [_parse_record(row) for row in response.data or []]

    def delete(self, record_id: UUID) -> bool:
        """Delete a record; return True if a row was removed."""
        response = self.client.table(TABLE).delete().eq("id", str(record_id)).execute()
        return bool(response.data)

    def clear(self) -> None:
        """Delete every record."""
        self.client.table(TABLE).delete().neq("id", "").execute()

    def trim(self, max_records: int) -> int:
        """Delete rows beyond the newest ``max_records``."""
        response = (
            self.client.table(TABLE)
            .select("id")
            .order("timestamp", desc=True)
            .range(max_records, max_records + 999)
            .execute()
        )
        stale_ids = [row["id"] for row in response.data or []]
        if stale_ids:
            self.client.table(TABLE).delete().in_("id", stale_ids).execute()
        return len(stale_ids)


def _serialize(record: HistoryRecord) -> dict[str, object]:
    return {
        "id": str(record.id),
        "analysis_id": str(record.analysis_id),
        "scene_id": record.scene_id,
        "scene_name": record.scene_name,
        "timestamp": record.timestamp.isoformat(),
        "summary": record.summary,
        "risk_level": record.risk_level,
        "requires_manual_review": record.requires_manual_review,
        "has_followup": record.has_followup,
        "observation_count": record.observation_count,
        "confidence": record.confidence,
        "features": [feature.model_dump() for feature in record.features],
    }


def _parse_record(row: dict[str, object]) -> HistoryRecord:
    return HistoryRecord(
        id=UUID(str(row["id"])),
        analysis_id=UUID(str(row["analysis_id"])),
        scene_id=str(row["scene_id"]),
        scene_name=str(row["scene_name"]),
        timestamp=datetime.fromisoformat(str(row["timestamp"])),
        summary=str(row.get("summary") or ""),
        risk_level=row["risk_level"],
        requires_manual_review=bool(row.get("requires_manual_review")),
        has_followup=bool(row.get("has_followup")),
        observation_count=int(row.get("observation_count") or 0),
        confidence=float(row.get("confidence") or 0.0),
        features=[
            DetectedFeature.model_validate(feature)
            for feature in row.get("features") or []
        ],
    )
