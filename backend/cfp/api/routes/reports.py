"""Report Routes — talk export projection and dashboard counts (organizers only)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.api.deps import get_actor
from cfp.core.domain_types import Actor, TalkState
from cfp.core.permissions import require_organizer
from cfp.infrastructure.database import get_db
from cfp.schemas.talk import DashboardStats, TalkExportResponse
from cfp.services.talk_store import TalkStore

router = APIRouter(prefix="/api/v1", tags=["reports"])


@router.get("/export/talks", response_model=list[TalkExportResponse])
async def export_talks(
    state: TalkState | None = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    require_organizer(actor, "export talks")
    return await TalkStore(db).export_rows(state)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    require_organizer(actor, "view the dashboard")
    counts = await TalkStore(db).count_by_state()
    return DashboardStats(total_talks=sum(counts.values()), by_state=counts)
