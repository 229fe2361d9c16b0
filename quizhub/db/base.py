# Import every model so Base.metadata is complete for create_all and Alembic
from quizhub.db.base_class import Base
from quizhub.models.user import User, Group, group_members
from quizhub.models.quiz import Quiz, QuizSettings, Question, QuestionOption, quiz_groups
from quizhub.models.attempt import QuizAttempt, QuestionAnswer
from quizhub.models.certificate import Certificate
