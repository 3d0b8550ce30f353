import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from fastapi.responses import PlainTextResponse

from clinic_feedback.deps import get_board, get_inbound_handler, get_messaging_config
from clinic_feedback.services.board import BoardSync
from clinic_feedback.services.messaging import InboundMessageHandler, MessagingConfig

logger = logging.getLogger("clinic_feedback.messaging")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def extract_messages(payload: dict) -> list[dict]:
    found: list[dict] = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            found.extend((change.get("value") or {}).get("messages") or [])
    return found


@router.get("/whatsapp", response_class=PlainTextResponse)
def verify_whatsapp_webhook(
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    config: MessagingConfig = Depends(get_messaging_config),
):
    if mode == "subscribe" and token and token == config.verify_token:
        logger.info("Messaging webhook verified")
        return PlainTextResponse(challenge or "")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("/whatsapp")
def receive_whatsapp_event(
    payload: dict | None = Body(default=None),
    handler: InboundMessageHandler = Depends(get_inbound_handler),
):
    messages = extract_messages(payload or {})
    for message in messages:
        handler.handle(message)
    return {"ok": True, "received": len(messages)}


@router.head("/board")
def board_webhook_head():
    return Response(status_code=status.HTTP_200_OK)


@router.post("/board")
def receive_board_event(
    payload: dict | None = Body(default=None),
    board: BoardSync = Depends(get_board),
):
    return board.handle_webhook(payload)
