from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Float
from sqlalchemy.orm import relationship
from quizhub.db.base_class import Base

class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    certificate_code = Column(String(40), unique=True, index=True, nullable=False)
    score = Column(Float, nullable=False)
    issued_at = Column(DateTime, nullable=False)

    # Relationships
    attempt = relationship("QuizAttempt")
    user = relationship("User", lazy="selectin")
    quiz = relationship("Quiz", lazy="selectin")
