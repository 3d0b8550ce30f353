"""Messaging collaborator: outbound texts, media downloads and inbound events."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import DomainError, IntegrationUnavailable
from clinic_feedback.db.session import atomic
from clinic_feedback.models.patient import Patient
from clinic_feedback.services import messages as message_store
from clinic_feedback.services.patient_import.pipeline import ImportConfig, import_patients_from_file

logger = logging.getLogger("clinic_feedback.messaging")

SPREADSHEET_SUFFIXES = (".xlsx", ".csv")

DEFAULT_WELCOME_MESSAGES = (
    "Ассалому алайкум, ҳурматли беморимиз!\n"
    "Мен Orzu Medical клиникасидан Дурдона.\n\n"
    "Клиникамизга ташрифингиздан кейин ўзингизни қандай ҳис қиляпсиз?\n"
    "Биз кўрсатган хизматлар сизга маъқул бўлдими?\n\n"
    "Сизнинг фикрингиз биз учун жуда муҳим!",
    "Ассалаумағалейкум, құрметті қонағымыз!\n"
    "Мен Orzu Medical клиникасынан Дурдона.\n\n"
    "Клиникамызға келгеннен кейін өзіңізді қалай сезініп жүрсіз?\n"
    "Біздің қызметіміз сізге ұнады ма?\n\n"
    "Сіздің пікіріңіз біз үшін өте маңызды!",
)


@dataclass(frozen=True)
class MessagingConfig:
    access_token: str
    verify_token: str
    sender_phone_id: str
    graph_url: str = "https://graph.facebook.com/v22.0"
    timeout_seconds: float = 15.0
    broadcast_pause_seconds: float = 0.0
    welcome_messages: tuple[str, ...] = DEFAULT_WELCOME_MESSAGES

    @property
    def enabled(self) -> bool:
        return bool(self.access_token and self.sender_phone_id)

    @classmethod
    def from_settings(cls, settings) -> "MessagingConfig":
        return cls(
            access_token=settings.whatsapp_access_token,
            verify_token=settings.whatsapp_verify_token or settings.whatsapp_access_token,
            sender_phone_id=settings.whatsapp_sender_phone_id,
            graph_url=settings.whatsapp_graph_url,
            broadcast_pause_seconds=settings.whatsapp_broadcast_pause_seconds,
        )


class MediaUnavailable(RuntimeError):
    pass


class MessagingClient:
    def __init__(self, config: MessagingConfig, *, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._client = httpx.Client(
            timeout=config.timeout_seconds,
            headers={"Authorization": f"Bearer {config.access_token}"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def send_text(self, to: str, text: str) -> bool:
        if not self.config.enabled:
            logger.info("Messaging disabled; not sending to %s", to)
            return False
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }
        try:
            response = self._client.post(
                f"{self.config.graph_url}/{self.config.sender_phone_id}/messages", json=payload
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to send message to %s: %s", to, exc)
            return False
        logger.info("Message sent to %s", to)
        return True

    def get_media_url(self, media_id: str) -> str:
        response = self._client.get(f"{self.config.graph_url}/{media_id}")
        response.raise_for_status()
        url = response.json().get("url")
        if not url:
            raise MediaUnavailable(f"No download url for media {media_id}")
        return url

    def download_media(self, url: str) -> tuple[bytes, str]:
        response = self._client.get(url)
        response.raise_for_status()
        return response.content, response.headers.get("content-type", "audio/ogg")


def is_spreadsheet(document: dict) -> bool:
    mime_type = (document.get("mime_type") or "").lower()
    filename = (document.get("filename") or "").lower()
    return "spreadsheet" in mime_type or "csv" in mime_type or filename.endswith(SPREADSHEET_SUFFIXES)


class InboundMessageHandler:
    """Stores inbound texts and voices as temporary messages and runs imports."""

    def __init__(
        self,
        client: MessagingClient,
        session_factory: Callable[[], Session],
        import_config: ImportConfig,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.import_config = import_config

    def handle(self, message: dict) -> None:
        sender = message.get("from", "")
        kind = message.get("type")
        if kind == "text":
            self._handle_text(sender, message.get("text", {}).get("body", ""))
        elif kind == "audio":
            self.client.send_text(sender, "Voice message received, saving it.")
            self._handle_audio(sender, message.get("audio", {}))
        elif kind == "document":
            self._handle_document(sender, message.get("document", {}))
        else:
            logger.info("Ignoring inbound message of type %s from %s", kind, sender)

    def _handle_text(self, sender: str, body: str) -> None:
        db = self.session_factory()
        try:
            with atomic(db):
                message_store.store_text_message(db, sender=sender, body=body)
        except Exception:
            logger.exception("Failed to store text message from %s", sender)
            return
        finally:
            db.close()
        self.client.send_text(sender, "Message received and saved.")

    def _handle_audio(self, sender: str, audio: dict) -> None:
        media_id = audio.get("id")
        db = self.session_factory()
        try:
            payload, mime_type = self.client.download_media(self.client.get_media_url(media_id))
            with atomic(db):
                message_store.store_voice_message(
                    db,
                    sender=sender,
                    media_id=media_id,
                    payload=payload,
                    mime_type=mime_type,
                    duration=audio.get("duration"),
                )
        except Exception:
            logger.exception("Failed to store voice message %s from %s", media_id, sender)
            return
        finally:
            db.close()
        self.client.send_text(sender, "Voice message saved.")

    def _handle_document(self, sender: str, document: dict) -> None:
        if not is_spreadsheet(document):
            self.client.send_text(sender, "The file is not recognized as a spreadsheet.")
            return
        self.client.send_text(sender, "Spreadsheet received, importing patients...")
        db = self.session_factory()
        try:
            buffer, _ = self.client.download_media(self.client.get_media_url(document.get("id")))
            with atomic(db):
                report = import_patients_from_file(
                    db, buffer, document.get("filename"), self.import_config
                )
        except DomainError as exc:
            self.client.send_text(sender, f"Import failed: {exc.message}")
            return
        except (httpx.HTTPError, MediaUnavailable) as exc:
            logger.warning("Failed to download spreadsheet from %s: %s", sender, exc)
            self.client.send_text(sender, "Import failed: the file could not be downloaded.")
            return
        except Exception:
            logger.exception("Spreadsheet import from %s failed", sender)
            self.client.send_text(sender, "Import failed: internal error, please try again later.")
            return
        finally:
            db.close()
        summary = f"Patients imported: {report.imported}, duplicates skipped: {report.skipped_duplicates}"
        if report.errors:
            summary += f", rows with errors: {len(report.errors)}"
        self.client.send_text(sender, summary)


@dataclass
class BroadcastReport:
    total: int = 0
    processed: int = 0
    failed: list[str] = field(default_factory=list)


def send_welcome_messages(
    client: MessagingClient,
    patients: list[Patient],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> BroadcastReport:
    """Send the welcome texts to each patient; one patient failing does not stop the rest."""
    if not client.config.enabled:
        raise IntegrationUnavailable("Messaging is not configured")
    pause = client.config.broadcast_pause_seconds
    report = BroadcastReport(total=len(patients))
    for index, patient in enumerate(patients):
        if index and pause:
            sleep(pause)
        to = patient.phone_number.lstrip("+")
        # all() stops at the first text that fails to send
        if all(client.send_text(to, text) for text in client.config.welcome_messages):
            report.processed += 1
        else:
            report.failed.append(patient.phone_number)
            logger.warning("Welcome message to patient %s (%s) failed", patient.id, patient.phone_number)
    logger.info("Welcome broadcast reached %s of %s patients", report.processed, report.total)
    return report
