from sqlalchemy import func, select

from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.models.rating import Rating
from clinic_feedback.services.messages import store_text_message, store_voice_message


def test_call_status_then_rating_resolve_to_one_patient(client, db, operator_headers):
    call = client.post(
        "/call-statuses",
        json={"status": "no_answer", "phone_number": "+998901234567", "branch": "Ташкент"},
        headers=operator_headers,
    )
    assert call.status_code == 201, call.text

    rating = client.post(
        "/ratings",
        json={"category": "doctors", "score": 4, "phone_number": "998901234567", "branch": "Самарканд"},
        headers=operator_headers,
    )
    assert rating.status_code == 201, rating.text

    assert rating.json()["patient_id"] == call.json()["patient_id"]
    [patient] = list(db.scalars(select(Patient)))
    assert patient.status is PatientStatus.regular
    assert patient.branch.value == "САМАРКАНД"


def test_requests_run_while_test_session_is_mid_transaction(client, db, operator_headers):
    assert db.scalar(select(func.count(Patient.id))) == 0
    assert db.in_transaction()

    response = client.post(
        "/call-statuses",
        json={"status": "answered", "phone_number": "+998901234567", "branch": "Нукус"},
        headers=operator_headers,
    )
    assert response.status_code == 201, response.text
    assert db.scalar(select(func.count(Patient.id))) == 1


def test_call_status_validation_errors(client, operator_headers):
    bad_phone = client.post(
        "/call-statuses",
        json={"status": "no_answer", "phone_number": "12345", "branch": "Ташкент"},
        headers=operator_headers,
    )
    assert bad_phone.status_code == 400

    bad_outcome = client.post(
        "/call-statuses",
        json={"status": "maybe", "phone_number": "+998901234567", "branch": "Ташкент"},
        headers=operator_headers,
    )
    assert bad_outcome.status_code == 422


def test_call_status_listing_and_delete_last(client, operator_headers, admin_headers):
    for outcome in ("no_answer", "answered"):
        client.post(
            "/call-statuses",
            json={"status": outcome, "phone_number": "+998901234567", "branch": "Ташкент"},
            headers=operator_headers,
        )

    listed = client.get("/call-statuses", params={"take": 1}, headers=operator_headers).json()
    assert [item["status"] for item in listed] == ["answered"]
    assert client.get("/call-statuses", params={"take": 500}, headers=operator_headers).status_code == 422

    assert client.delete("/call-statuses/last", headers=admin_headers).json() == {"deleted": 1}
    remaining = client.get("/call-statuses", headers=operator_headers).json()
    assert [item["status"] for item in remaining] == ["no_answer"]


def test_bulk_ratings_fill_missing_categories(client, db, operator_headers, admin_headers):
    response = client.post(
        "/ratings/bulk",
        json={
            "phone_number": "+998901234567",
            "branch": "Нукус",
            "ratings": [{"category": "doctors", "score": 2}, {"category": "kitchen", "score": 3}],
        },
        headers=operator_headers,
    )
    assert response.status_code == 201, response.text
    assert sorted(item["score"] for item in response.json()) == [2, 3, 5, 5, 5]
    assert db.scalar(select(func.count(Rating.id))) == 5

    assert client.delete("/ratings/last", headers=admin_headers).json() == {"deleted": 5}
    assert client.get("/ratings", headers=operator_headers).json() == []


def test_bulk_ratings_with_category_feedback(client, db, board, operator_headers):
    text = store_text_message(db, sender="998901234567", body="Грязно в палате")
    db.commit()

    response = client.post(
        "/ratings/bulk",
        json={
            "phone_number": "+998901234567",
            "branch": "Нукус",
            "ratings": [
                {
                    "category": "cleaning",
                    "score": 2,
                    "feedback": {
                        "first_name": "Иван",
                        "category": "complaint",
                        "phone_number": "+998901234567",
                        "text_ids": [text.id],
                    },
                }
            ],
        },
        headers=operator_headers,
    )
    assert response.status_code == 201, response.text
    linked = {item["category"]: item["feedback_id"] for item in response.json()}
    assert linked["cleaning"] is not None
    assert [value for key, value in linked.items() if key != "cleaning"] == [None] * 4
    assert board.created == [linked["cleaning"]]
    assert client.get("/messages/text", headers=operator_headers).json() == []


def test_bulk_ratings_reject_repeated_category(client, operator_headers):
    response = client.post(
        "/ratings/bulk",
        json={
            "phone_number": "+998901234567",
            "branch": "Нукус",
            "ratings": [{"category": "doctors", "score": 2}, {"category": "doctors", "score": 3}],
        },
        headers=operator_headers,
    )
    assert response.status_code == 422


def test_feedback_flow(client, db, board, operator, operator_headers):
    text = store_text_message(db, sender="998901234567", body="Грубый персонал")
    voice = store_voice_message(
        db, sender="998901234567", media_id="media-9", payload=b"OggS", mime_type="audio/ogg"
    )
    db.commit()

    texts = client.get("/messages/text", headers=operator_headers).json()
    assert [item["message"] for item in texts] == ["Грубый персонал"]
    voices = client.get("/messages/voice", headers=operator_headers).json()
    assert voices[0]["url"].endswith(f"/messages/voice/{voice.id}/stream")

    stream = client.get("/messages/voice/media-9/stream")
    assert stream.status_code == 200
    assert stream.content == b"OggS"

    created = client.post(
        "/feedbacks",
        json={
            "first_name": "Иван",
            "last_name": "Иванов",
            "category": "complaint",
            "phone_number": "+998901234567",
            "branch": "Ташкент",
            "text_ids": [text.id],
            "voice_ids": [voice.id],
        },
        headers=operator_headers,
    )
    assert created.status_code == 201, created.text
    feedback = created.json()
    assert feedback["status"] == "Поступившие жалобы"
    assert [item["message"] for item in feedback["messages"]] == ["Грубый персонал"]
    assert board.created == [feedback["id"]]

    assert client.get("/messages/text", headers=operator_headers).json() == []
    by_phone = client.get("/feedbacks/by-phone/998901234567", headers=operator_headers).json()
    assert [item["id"] for item in by_phone] == [feedback["id"]]
    by_user = client.get(f"/feedbacks/by-user/{operator.id}", headers=operator_headers).json()
    assert len(by_user) == 1
    by_status = client.get("/feedbacks/by-status/Поступившие жалобы", headers=operator_headers).json()
    assert len(by_status) == 1


def test_feedback_without_messages_is_rejected(client, board, operator_headers):
    response = client.post(
        "/feedbacks",
        json={
            "first_name": "Иван",
            "category": "complaint",
            "phone_number": "+998901234567",
            "text_ids": [12],
        },
        headers=operator_headers,
    )
    assert response.status_code == 404
    assert board.created == []


def test_temporary_message_cleanup(client, db, operator_headers):
    first = store_text_message(db, sender="998901234567", body="one")
    store_text_message(db, sender="998901234567", body="two")
    db.commit()

    assert client.delete(f"/messages/text/{first.id}", headers=operator_headers).status_code == 204
    assert client.delete("/messages/text", headers=operator_headers).json() == {"deleted": 1}
    assert client.delete("/messages/voice", headers=operator_headers).json() == {"deleted": 0}
    assert client.delete("/messages/text/999", headers=operator_headers).status_code == 404
