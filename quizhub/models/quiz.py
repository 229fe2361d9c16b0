from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from quizhub.db.base_class import Base

QUIZ_DRAFT = "draft"
QUIZ_PUBLISHED = "published"
QUIZ_ARCHIVED = "archived"

ACCESS_PUBLIC = "public"
ACCESS_PRIVATE = "private"
ACCESS_PASSWORD = "password"

QUESTION_MCQ = "mcq"
QUESTION_TRUE_FALSE = "true_false"
QUESTION_OPEN = "open"

quiz_groups = Table(
    "quiz_groups",
    Base.metadata,
    Column("quiz_id", Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)

class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500))
    status = Column(String(20), nullable=False, default=QUIZ_DRAFT)
    type = Column(String(20), nullable=False, default="classic")
    author_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    author = relationship("User")
    settings = relationship("QuizSettings", back_populates="quiz", uselist=False, lazy="selectin")
    questions = relationship("Question", back_populates="quiz", order_by="Question.order", lazy="selectin")
    groups = relationship("Group", secondary=quiz_groups)

class QuizSettings(Base):
    __tablename__ = "quiz_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), unique=True, nullable=False)
    time_limit = Column(Integer, nullable=True)  # minutes
    passing_score = Column(Integer, nullable=True)  # percentage of max points
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    show_results = Column(Boolean, nullable=False, default=True)
    access_mode = Column(String(20), nullable=False, default=ACCESS_PUBLIC)
    access_code = Column(String(100), nullable=True)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)

    quiz = relationship("Quiz", back_populates="settings")

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (UniqueConstraint("quiz_id", "order", name="uq_questions_quiz_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False, default=QUESTION_MCQ)
    content = Column(Text, nullable=False)
    points = Column(Integer, nullable=False, default=1)
    order = Column(Integer, nullable=False, default=0)

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")
    options = relationship("QuestionOption", back_populates="question", order_by="QuestionOption.order", lazy="selectin")

class QuestionOption(Base):
    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")
