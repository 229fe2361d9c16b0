import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from quizhub.core.security import ROLE_STUDENT, ROLE_TEACHER, Identity, create_access_token
from quizhub.core.utils import get_now
from quizhub.db.base import Base, Group, Question, QuestionOption, Quiz, QuizSettings, User, quiz_groups
from quizhub.db.session import get_db
from quizhub.main import app

NOW = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quizhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def make_user(db, name="Learner", role=ROLE_STUDENT):
    user = User(name=name, email=f"{name.lower().replace(' ', '.')}@example.com", role=role)
    db.add(user)
    await db.commit()
    return user


async def make_quiz(db, author, status="published", settings=None, questions=None, title="Q1"):
    """
    Create a quiz with optional settings and questions.

    ``questions`` is a list of dicts: ``{"type": "mcq", "points": 2,
    "options": [("4", True), ("5", False)]}``.
    """
    quiz = Quiz(title=title, status=status, type="classic", author_id=author.id)
    db.add(quiz)
    await db.flush()
    if settings is not None:
        db.add(QuizSettings(quiz_id=quiz.id, **settings))
    for order, entry in enumerate(questions or []):
        question = Question(
            quiz_id=quiz.id,
            type=entry.get("type", "mcq"),
            content=entry.get("content", f"Question {order + 1}"),
            points=entry.get("points", 1),
            order=order,
        )
        db.add(question)
        await db.flush()
        for option_order, (content, is_correct) in enumerate(entry.get("options", [])):
            db.add(QuestionOption(
                question_id=question.id,
                content=content,
                is_correct=is_correct,
                order=option_order,
            ))
    await db.commit()
    return quiz


async def make_group(db, quiz, members):
    group = Group(name=f"Group for {quiz.title}")
    group.members = list(members)
    db.add(group)
    await db.flush()
    await db.execute(quiz_groups.insert().values(quiz_id=quiz.id, group_id=group.id))
    await db.commit()
    return group


async def load_questions(db, quiz):
    result = await db.execute(
        select(Question)
        .where(Question.quiz_id == quiz.id)
        .order_by(Question.order)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


def identity_for(user):
    return Identity(user_id=user.id, role=user.role)


@pytest.fixture
async def author(db):
    return await make_user(db, name="Author", role=ROLE_TEACHER)


@pytest.fixture
async def learner(db):
    return await make_user(db, name="Learner", role=ROLE_STUDENT)


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: NOW
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}
