from pydantic import BaseModel
from typing import List
from datetime import datetime

class LeaderboardEntry(BaseModel):
    rank: int
    user: str
    score: float
    completed_at: datetime

class Leaderboard(BaseModel):
    quiz_id: int
    entries: List[LeaderboardEntry]
