from app.db.repo.activation_keys_repo import ActivationKeysRepo
from app.db.repo.admins_repo import AdminsRepo
from app.db.repo.analysis_messages_repo import AnalysisMessagesRepo
from app.db.repo.courses_repo import CoursesRepo
from app.db.repo.enrollments_repo import EnrollmentsRepo
from app.db.repo.episode_progress_repo import EpisodeProgressRepo
from app.db.repo.feed_repo import FeedRepo
from app.db.repo.quiz_attempts_repo import QuizAttemptsRepo
from app.db.repo.quiz_progress_repo import QuizProgressRepo
from app.db.repo.quizzes_repo import QuizzesRepo
from app.db.repo.subscriptions_repo import SubscriptionsRepo
from app.db.repo.users_repo import UsersRepo

__all__ = [
    "ActivationKeysRepo",
    "AdminsRepo",
    "AnalysisMessagesRepo",
    "CoursesRepo",
    "EnrollmentsRepo",
    "EpisodeProgressRepo",
    "FeedRepo",
    "QuizAttemptsRepo",
    "QuizProgressRepo",
    "QuizzesRepo",
    "SubscriptionsRepo",
    "UsersRepo",
]
