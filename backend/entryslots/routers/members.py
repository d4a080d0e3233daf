from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_identity, get_member_service, get_session
from ..infrastructure.repositories import SqlAlchemyVideoRepository
from ..schemas import SuggestionRead
from ..usecases.members import MemberSuggestionService
from ..utils.auth import Identity

router = APIRouter(prefix="/members", tags=["members"])


@router.get("/suggestions", response_model=SuggestionRead)
async def suggest_members(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(default=10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
    member_service: MemberSuggestionService = Depends(get_member_service),
) -> SuggestionRead:
    video_repo = SqlAlchemyVideoRepository(session)
    result = await member_service.suggest(video_repo, q, limit=limit)
    return SuggestionRead.from_result(result)
