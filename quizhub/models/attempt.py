from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Float, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from quizhub.db.base_class import Base

ATTEMPT_IN_PROGRESS = "in_progress"
ATTEMPT_COMPLETED = "completed"

class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default=ATTEMPT_IN_PROGRESS)
    score = Column(Float, nullable=True)  # raw points, set by grading
    max_score = Column(Float, nullable=True)

    # Relationships
    quiz = relationship("Quiz")
    user = relationship("User")
    answers = relationship("QuestionAnswer", back_populates="attempt", lazy="selectin")

    @property
    def percentage(self) -> float:
        if not self.max_score:
            return 0.0
        return (self.score or 0) / self.max_score * 100.0

class QuestionAnswer(Base):
    __tablename__ = "question_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_answers_attempt_question"),)

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    option_id = Column(Integer, nullable=True)  # not constrained, grading treats a foreign id as wrong
    answer_content = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)  # None while pending
    points_awarded = Column(Float, nullable=False, default=0)

    attempt = relationship("QuizAttempt", back_populates="answers")
    question = relationship("Question")
