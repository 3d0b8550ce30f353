"""Card-board collaborator: complaint cards and the board's webhook."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from clinic_feedback.db.session import atomic
from clinic_feedback.models.board_card import BoardCard
from clinic_feedback.models.feedback import Feedback

logger = logging.getLogger("clinic_feedback.board")

CLINIC_TZ = ZoneInfo("Asia/Tashkent")


@dataclass(frozen=True)
class BoardConfig:
    key: str
    token: str
    board_id: str
    base_url: str = "https://api.trello.com/1"
    api_base_url: str = "http://localhost:8000"
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.key and self.token and self.board_id)

    @classmethod
    def from_settings(cls, settings) -> "BoardConfig":
        return cls(
            key=settings.trello_key,
            token=settings.trello_token,
            board_id=settings.trello_board_id,
            base_url=settings.trello_base_url,
            api_base_url=settings.api_base_url,
        )


class BoardError(RuntimeError):
    pass


class BoardClient:
    def __init__(self, config: BoardConfig, *, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            params={"key": config.key, "token": config.token},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self._client.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json()

    def get_lists(self) -> list[dict]:
        return self._request("GET", f"/boards/{self.config.board_id}/lists")

    def ensure_label(self, name: str) -> str:
        labels = self._request("GET", f"/boards/{self.config.board_id}/labels")
        for label in labels:
            if label.get("name") == name:
                return label["id"]
        created = self._request(
            "POST",
            "/labels",
            params={"idBoard": self.config.board_id, "name": name, "color": "blue"},
        )
        return created["id"]

    def create_card(
        self,
        *,
        list_id: str,
        title: str,
        description: str,
        label_id: str | None = None,
    ) -> dict:
        body: dict[str, Any] = {"idList": list_id, "name": title, "desc": description}
        if label_id:
            body["idLabels"] = label_id
        return self._request("POST", "/cards", json=body)


def _format_created(value: datetime | None) -> str:
    if value is None:
        return "not set"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(CLINIC_TZ).strftime("%d.%m.%Y %H:%M")


def build_card_description(feedback: Feedback, api_base_url: str) -> str:
    patient_name = f"{feedback.first_name or ''} {feedback.last_name or ''}".strip() or "not set"
    branch = feedback.branch.value if feedback.branch else "not set"
    lines = [
        "Patient feedback",
        "",
        f"Name: {patient_name}",
        f"Phone: {feedback.phone_number or 'not set'}",
        f"Branch: {branch}",
        f"Category: {feedback.category.value}",
        f"Status: {feedback.status or 'not set'}",
        "",
        "Text:",
    ]
    if feedback.messages:
        lines += [f"{index}. {message.message}" for index, message in enumerate(feedback.messages, 1)]
    else:
        lines.append("no text")
    if feedback.voices:
        lines.append("")
        lines += [
            f"[Audio {index}]({voice.stream_url(api_base_url)})"
            for index, voice in enumerate(feedback.voices, 1)
        ]
    lines += ["", f"Date: {_format_created(feedback.created_at)}", f"feedbackId:{feedback.id}"]
    return "\n".join(lines)


def card_title(feedback: Feedback) -> str:
    branch = feedback.branch.value if feedback.branch else "-"
    return f"{branch} | {feedback.category.value}"


class BoardSync:
    """Keeps complaint cards on the board in step with stored feedback."""

    def __init__(self, client: BoardClient, session_factory: Callable[[], Session]) -> None:
        self.client = client
        self.session_factory = session_factory

    @property
    def enabled(self) -> bool:
        return self.client.config.enabled

    def _first_list(self) -> dict:
        lists = self.client.get_lists()
        if not lists:
            raise BoardError("No lists found on the board")
        return lists[0]

    def create_card_for_feedback(self, feedback_id: int) -> str | None:
        if not self.enabled:
            logger.info("Board disabled; skipping card for feedback %s", feedback_id)
            return None
        db = self.session_factory()
        try:
            feedback = db.scalar(
                select(Feedback)
                .where(Feedback.id == feedback_id)
                .options(selectinload(Feedback.messages), selectinload(Feedback.voices))
            )
            if feedback is None:
                raise BoardError(f"Feedback {feedback_id} not found")
            title = card_title(feedback)
            description = build_card_description(feedback, self.client.config.api_base_url)
            branch = feedback.branch.value if feedback.branch else None
        finally:
            db.close()

        first_list = self._first_list()
        label_id = self.client.ensure_label(branch) if branch else None
        card = self.client.create_card(
            list_id=first_list["id"], title=title, description=description, label_id=label_id
        )

        db = self.session_factory()
        try:
            with atomic(db):
                db.add(
                    BoardCard(
                        card_id=card["id"],
                        list_id=first_list["id"],
                        board_id=self.client.config.board_id,
                        feedback_id=feedback_id,
                    )
                )
        finally:
            db.close()
        logger.info("Board card %s created for feedback %s", card["id"], feedback_id)
        return card["id"]

    def recreate_card(self, card_payload: dict) -> dict:
        first_list = self._first_list()
        name = card_payload.get("name") or "Restored card"
        desc = card_payload.get("desc") or f"Restored: {datetime.now(timezone.utc).isoformat()}"
        created = self.client.create_card(list_id=first_list["id"], title=name, description=desc)
        logger.info("Board card recreated: %s", created.get("id"))
        return created

    def _on_card_moved(self, db: Session, card: dict, list_after: dict) -> None:
        mapping = db.scalar(select(BoardCard).where(BoardCard.card_id == card["id"]))
        if mapping is None:
            return
        mapping.list_id = list_after.get("id")
        if mapping.feedback is not None and list_after.get("name"):
            mapping.feedback.status = list_after["name"]
            logger.info("Feedback %s status set to %s", mapping.feedback_id, list_after["name"])

    def _on_card_deleted(self, db: Session, card: dict) -> None:
        recreated = self.recreate_card(card)
        mapping = db.scalar(select(BoardCard).where(BoardCard.card_id == card["id"]))
        if mapping is not None:
            mapping.card_id = recreated["id"]
            mapping.list_id = recreated.get("idList") or mapping.list_id

    def handle_webhook(self, payload: dict | None) -> dict:
        action = (payload or {}).get("action")
        if not action:
            return {"ok": True}
        action_type = action.get("type")
        data = action.get("data") or {}
        card = data.get("card")
        logger.info("Board webhook action: %s", action_type)

        db = self.session_factory()
        try:
            with atomic(db):
                if action_type == "updateCard" and card and data.get("listAfter"):
                    self._on_card_moved(db, card, data["listAfter"])
                elif action_type in {"deleteCard", "removeCardFromBoard"} and card:
                    self._on_card_deleted(db, card)
        except Exception:
            logger.exception("Error handling board webhook action %s", action_type)
        finally:
            db.close()
        return {"ok": True}
