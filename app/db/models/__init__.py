from app.db.models.activation_keys import ActivationKey
from app.db.models.admins import Admin
from app.db.models.analysis_messages import AnalysisMessage
from app.db.models.courses import Course
from app.db.models.enrollments import Enrollment
from app.db.models.episode_progress import EpisodeProgress
from app.db.models.episodes import Episode
from app.db.models.feed_posts import FeedPost
from app.db.models.feed_reactions import FeedReaction
from app.db.models.quiz_answers import QuizAnswer
from app.db.models.quiz_attempts import QuizAttempt
from app.db.models.quiz_level_progress import QuizLevelProgress
from app.db.models.quiz_options import QuizOption
from app.db.models.quiz_questions import QuizQuestion
from app.db.models.quizzes import Quiz
from app.db.models.subscriptions import Subscription
from app.db.models.users import User

__all__ = [
    "ActivationKey",
    "Admin",
    "AnalysisMessage",
    "Course",
    "Enrollment",
    "Episode",
    "EpisodeProgress",
    "FeedPost",
    "FeedReaction",
    "Quiz",
    "QuizAnswer",
    "QuizAttempt",
    "QuizLevelProgress",
    "QuizOption",
    "QuizQuestion",
    "Subscription",
    "User",
]
