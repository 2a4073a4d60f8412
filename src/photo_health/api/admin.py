"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import Response
from pydantic import ValidationError

from photo_health.services.comparison import (
    COMPARISON_METRICS,
    change_percentage,
    comparison_report,
    generate_timeline,
)

if TYPE_CHECKING:
    from photo_health.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/history", dependencies=[Depends(require_admin)])
async def list_history(
    request: Request, limit: int = 20, scene_id: str | None = None
) -> dict[str, object]:
    """Return recent history records, optionally for one scene."""
    container: AppContainer = request.app.state.container
    history = container.history_service
    records = history.by_scene(scene_id)[:limit] if scene_id else history.recent(limit)
    return {"records": [record.model_dump(mode="json") for record in records]}


@router.get("/history/export", dependencies=[Depends(require_admin)])
async def export_history(request: Request) -> Response:
    """Download the full history as JSON."""
    container: AppContainer = request.app.state.container
    return Response(
        content=container.history_service.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="history.json"'},
    )


@router.get("/history/compare", dependencies=[Depends(require_admin)])
async def compare_history(
    request: Request, scene_id: str, limit: int | None = None
) -> dict[str, object]:
    """Compare past analyses of one scene."""
    container: AppContainer = request.app.state.container
    comparison = container.history_service.compare(scene_id, limit)
    return {
        "comparison": comparison.model_dump(mode="json"),
        "timeline": [
            point.model_dump(mode="json")
            for point in generate_timeline(comparison.records)
        ],
        "change_percentage": {
            metric: change_percentage(comparison.records, metric)
            for metric in COMPARISON_METRICS
        },
        "report": comparison_report(comparison),
    }


@router.post("/history/import", dependencies=[Depends(require_admin)])
async def import_history(request: Request) -> dict[str, int]:
    """Merge an exported history document."""
    container: AppContainer = request.app.state.container
    payload = (await request.body()).decode("utf-8", errors="replace")
    try:
        imported = container.history_service.import_json(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail="Invalid history document",
        ) from exc
    return {"imported": imported}


@router.delete("/history/{record_id}", dependencies=[Depends(require_admin)])
async def delete_history_record(record_id: UUID, request: Request) -> dict[str, str]:
    """Delete one history record."""
    container: AppContainer = request.app.state.container
    if not container.history_service.delete(record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"status": "deleted"}


@router.delete("/history", dependencies=[Depends(require_admin)])
async def clear_history(request: Request) -> dict[str, str]:
    """Delete the whole history."""
    container: AppContainer = request.app.state.container
    container.history_service.clear()
    return {"status": "cleared"}
