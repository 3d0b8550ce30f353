import pytest
from sqlalchemy import func, select

from clinic_feedback.core.errors import NotFound
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.feedback import FEEDBACK_STATUS_INCOMING, Feedback, FeedbackCategory
from clinic_feedback.models.message import MessageStatus, TextMessage, VoiceMessage
from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.services.feedbacks import (
    FeedbackDraft,
    create_feedback,
    list_feedbacks,
    list_feedbacks_by_phone,
    list_feedbacks_by_status,
    list_feedbacks_by_user,
)
from clinic_feedback.services.messages import store_text_message, store_voice_message

PHONE = "+998901234567"


def _draft(**overrides):
    values = dict(
        first_name="Иван",
        last_name="Иванов",
        category=FeedbackCategory.complaint,
        phone_number=PHONE,
        branch="Ташкент",
    )
    values.update(overrides)
    return FeedbackDraft(**values)


@pytest.fixture
def inbox(db):
    text = store_text_message(db, sender="998901234567", body="Грязно в палате")
    voice = store_voice_message(
        db, sender="998901234567", media_id="media-1", payload=b"OggS", mime_type="audio/ogg"
    )
    db.commit()
    return text.id, voice.id


def test_create_feedback_claims_messages_and_queues_card(db, operator, board, inbox):
    text_id, voice_id = inbox
    feedback = create_feedback(
        db, _draft(text_ids=[text_id], voice_ids=[voice_id]), user_id=operator.id, board=board
    )

    assert feedback.status == FEEDBACK_STATUS_INCOMING
    assert feedback.branch is Branch.tashkent
    assert db.get(TextMessage, text_id).status is MessageStatus.saved
    assert db.get(VoiceMessage, voice_id).feedback_id == feedback.id
    patient = db.get(Patient, feedback.patient_id)
    assert patient.status is PatientStatus.regular
    assert (patient.first_name, patient.last_name) == ("Иван", "Иванов")
    assert board.created == [feedback.id]


def test_already_claimed_messages_are_not_claimed_twice(db, operator, board, inbox):
    text_id, _ = inbox
    create_feedback(db, _draft(text_ids=[text_id]), user_id=operator.id, board=board)

    with pytest.raises(NotFound):
        create_feedback(db, _draft(text_ids=[text_id]), user_id=operator.id, board=board)
    assert db.scalar(select(func.count(Feedback.id))) == 1
    assert len(board.created) == 1


def test_failed_feedback_discards_side_effect(db, operator, board):
    with pytest.raises(NotFound):
        create_feedback(db, _draft(text_ids=[1, 2]), user_id=operator.id, board=board)

    assert board.created == []
    assert db.scalar(select(func.count(Patient.id))) == 0


def test_card_failure_does_not_undo_feedback(db, operator, inbox, inline_dispatcher):
    class BrokenBoard:
        def create_card_for_feedback(self, feedback_id):
            raise RuntimeError("board is down")

    text_id, _ = inbox
    feedback = create_feedback(db, _draft(text_ids=[text_id]), user_id=operator.id, board=BrokenBoard())

    assert db.get(Feedback, feedback.id) is not None
    assert inline_dispatcher.stats["failed"] == 1
    assert inline_dispatcher.failed[0].name == "board.create_card"


def test_feedback_listings(db, operator, board, inbox):
    text_id, voice_id = inbox
    first = create_feedback(db, _draft(text_ids=[text_id]), user_id=operator.id, board=board)
    second = create_feedback(
        db,
        _draft(phone_number="+998907654321", voice_ids=[voice_id], category=FeedbackCategory.suggestion),
        user_id=operator.id,
        board=board,
    )
    first_id, second_id = first.id, second.id
    second.status = "В работе"
    db.commit()

    assert {feedback.id for feedback in list_feedbacks(db)} == {first_id, second_id}
    assert [feedback.id for feedback in list_feedbacks_by_phone(db, "998 90 123 45 67")] == [first_id]
    assert [feedback.id for feedback in list_feedbacks_by_user(db, operator.id)] == [second_id, first_id]
    assert [feedback.id for feedback in list_feedbacks_by_status(db, "В работе")] == [second_id]
