from datetime import datetime, timedelta, timezone
from io import BytesIO

from openpyxl import load_workbook

from clinic_feedback.main import app
from clinic_feedback.services.messaging import MessagingConfig


class RecordingHandler:
    def __init__(self):
        self.handled = []

    def handle(self, message):
        self.handled.append(message)


def test_whatsapp_verification(client, monkeypatch):
    monkeypatch.setattr(
        app.state,
        "messaging_config",
        MessagingConfig(access_token="a", verify_token="verify-me", sender_phone_id="s"),
    )
    ok = client.get(
        "/webhooks/whatsapp",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "42"},
    )
    assert ok.status_code == 200
    assert ok.text == "42"

    denied = client.get(
        "/webhooks/whatsapp",
        params={"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "42"},
    )
    assert denied.status_code == 403


def test_whatsapp_events_are_dispatched(client, monkeypatch):
    handler = RecordingHandler()
    monkeypatch.setattr(app.state, "inbound_handler", handler)
    message = {"from": "998901234567", "type": "text", "text": {"body": "hi"}}
    payload = {"entry": [{"changes": [{"value": {"messages": [message]}}, {"value": {"statuses": []}}]}]}

    response = client.post("/webhooks/whatsapp", json=payload)

    assert response.json() == {"ok": True, "received": 1}
    assert handler.handled == [message]


def test_board_webhook(client, board):
    assert client.head("/webhooks/board").status_code == 200
    payload = {"action": {"type": "updateCard", "data": {}}}
    assert client.post("/webhooks/board", json=payload).json() == {"ok": True}
    assert board.webhooks == [payload]


def test_branch_report_download(client, admin_headers, operator_headers):
    today = datetime.now(timezone.utc).date()
    params = {
        "date_from": (today - timedelta(days=7)).isoformat(),
        "date_to": today.isoformat(),
    }
    assert client.get("/reports/branches.xlsx", params=params, headers=operator_headers).status_code == 403

    response = client.get("/reports/branches.xlsx", params=params, headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    sheet = load_workbook(BytesIO(response.content)).active
    assert sheet["A3"].value == "ТАШКЕНТ"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
