from clinic_feedback.models.base import Base
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.user import Role, User
from clinic_feedback.models.audit_log import AuditLog
from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.models.call_status import CallOutcome, CallStatus
from clinic_feedback.models.feedback import FEEDBACK_STATUS_INCOMING, Feedback, FeedbackCategory
from clinic_feedback.models.rating import MAX_RATING_SCORE, RATING_SCORES, Rating, RatingCategory
from clinic_feedback.models.message import MessageStatus, TextMessage, VoiceMessage
from clinic_feedback.models.board_card import BoardCard

__all__ = [
    "Base",
    "Branch",
    "Role",
    "User",
    "AuditLog",
    "Patient",
    "PatientStatus",
    "CallOutcome",
    "CallStatus",
    "Feedback",
    "FeedbackCategory",
    "FEEDBACK_STATUS_INCOMING",
    "Rating",
    "RatingCategory",
    "RATING_SCORES",
    "MAX_RATING_SCORE",
    "MessageStatus",
    "TextMessage",
    "VoiceMessage",
    "BoardCard",
]
