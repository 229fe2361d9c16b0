from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class StartAttemptRequest(BaseModel):
    access_code: Optional[str] = None

class SubmitAnswerRequest(BaseModel):
    question_id: int
    option_id: Optional[int] = None
    answer_content: Optional[str] = None

class Attempt(BaseModel):
    id: int
    quiz_id: int
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    score: Optional[float] = None
    max_score: Optional[float] = None

    class Config:
        from_attributes = True

class Answer(BaseModel):
    id: int
    question_id: int
    option_id: Optional[int] = None
    answer_content: Optional[str] = None

    class Config:
        from_attributes = True

class OptionView(BaseModel):
    id: int
    content: str

    class Config:
        from_attributes = True

class QuestionView(BaseModel):
    id: int
    type: str
    content: str
    points: int
    options: List[OptionView]

    class Config:
        from_attributes = True
