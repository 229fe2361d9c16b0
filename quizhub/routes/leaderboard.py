from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from quizhub.db.session import get_db
from quizhub.core.security import Identity, get_current_identity
from quizhub.schemas.leaderboard import Leaderboard
from quizhub.services.leaderboard import get_leaderboard

router = APIRouter()

@router.get("/quizzes/{quiz_id}/leaderboard", response_model=Leaderboard)
async def quiz_leaderboard(
    quiz_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Completed attempts ranked by score, earlier finishers first on ties."""
    entries = await get_leaderboard(db, quiz_id, identity)
    return {"quiz_id": quiz_id, "entries": entries}
