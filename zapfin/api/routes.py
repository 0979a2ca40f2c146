from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from loguru import logger

from zapfin.bot.router import MessageRouter
from zapfin.config import get_settings
from zapfin.confirmation.cache import ConfirmationCache
from zapfin.db.repository import LedgerRepository, month_window
from zapfin.deps import get_cache, get_repo, get_router, get_seen_messages, get_whatsapp
from zapfin.models.schemas import (
    ConfirmationStatus,
    Expense,
    Goal,
    InboundMessage,
    MessageReply,
    Revenue,
)
from zapfin.whatsapp.client import WhatsAppClient, extract_messages
from zapfin.whatsapp.dedup import RecentMessageIds

router = APIRouter()


@router.get("/")
def health():
    return {"status": "ok"}


@router.get("/webhook", response_class=PlainTextResponse)
def verify_webhook(
    mode: str = Query("", alias="hub.mode"),
    token: str = Query("", alias="hub.verify_token"),
    challenge: str = Query("", alias="hub.challenge"),
):
    settings = get_settings()
    if mode == "subscribe" and token and token == settings.whatsapp_verify_token:
        logger.info("Webhook verified")
        return challenge
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/webhook")
def receive_webhook(
    background_tasks: BackgroundTasks,
    payload: dict = Body(...),
    message_router: MessageRouter = Depends(get_router),
    repo: LedgerRepository = Depends(get_repo),
    whatsapp: WhatsAppClient = Depends(get_whatsapp),
    seen: RecentMessageIds = Depends(get_seen_messages),
):
    for msg in extract_messages(payload):
        if not seen.first_time(msg["id"]):
            logger.info("Skipping redelivered message {}", msg["id"])
            continue
        background_tasks.add_task(_process_message, msg, message_router, repo, whatsapp)

    # Ack before the slow model and media calls; Meta retries on anything but 200
    return {"ok": True}


def _process_message(
    msg: dict, message_router: MessageRouter, repo: LedgerRepository, whatsapp: WhatsAppClient
) -> None:
    sender = msg["from"]
    logger.info("WhatsApp {} message from {}", msg["type"], sender)
    repo.get_or_create_user(sender)

    image_url = None
    if msg["media_id"]:
        try:
            image_url = whatsapp.download_media_as_data_url(msg["media_id"])
        except Exception as e:
            logger.error("Failed to download media {}: {}", msg["media_id"], e)
            _send(whatsapp, sender, "❌ Não consegui baixar a imagem. Envie a foto novamente.")
            return

    reply = message_router.handle(sender, msg["text"], image_url=image_url)
    _send(whatsapp, sender, reply)


def _send(whatsapp: WhatsAppClient, to: str, body: str) -> None:
    if not whatsapp.configured:
        logger.warning("WhatsApp credentials not set — reply to {} not sent", to)
        return
    try:
        whatsapp.send_text(to, body)
    except Exception as e:
        logger.error("Failed to send reply to {}: {}", to, e)


@router.post("/messages", response_model=MessageReply)
def post_message(
    request: InboundMessage, message_router: MessageRouter = Depends(get_router)
):
    logger.info("Message from {}: {}", request.user_id, request.text)
    reply = message_router.handle(request.user_id, request.text, image_url=request.image_url)
    return MessageReply(reply=reply)


@router.get("/users/{user_id}/expenses", response_model=list[Expense])
def list_expenses(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    category: str | None = None,
    repo: LedgerRepository = Depends(get_repo),
):
    if category:
        return repo.get_user_expenses_by_category(user_id, category)[offset:offset + limit]
    return repo.get_user_expenses(user_id, limit=limit, offset=offset)


@router.get("/users/{user_id}/revenues", response_model=list[Revenue])
def list_revenues(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    category: str | None = None,
    repo: LedgerRepository = Depends(get_repo),
):
    if category:
        return repo.get_user_revenues_by_category(user_id, category)[offset:offset + limit]
    return repo.get_user_revenues(user_id, limit=limit, offset=offset)


@router.get("/users/{user_id}/goals", response_model=list[Goal])
def list_goals(
    user_id: str,
    status: str | None = Query(None, pattern="^(active|completed)$"),
    repo: LedgerRepository = Depends(get_repo),
):
    return repo.get_user_goals(user_id, status=status)


@router.get("/users/{user_id}/summary")
def month_summary(
    user_id: str,
    year: int = Query(..., ge=2000),
    month: int = Query(..., ge=1, le=12),
    repo: LedgerRepository = Depends(get_repo),
):
    revenues = sum(r.amount for r in repo.get_user_monthly_revenues(user_id, year, month))
    expenses = sum(e.amount for e in repo.get_user_monthly_expenses(user_id, year, month))
    start, end = month_window(year, month)
    return {
        "revenues": round(revenues, 2),
        "expenses": round(expenses, 2),
        "balance": round(revenues - expenses, 2),
        "expense_categories": repo.get_category_totals(user_id, "expense", start=start, end=end),
    }


@router.get("/confirmations/status", response_model=ConfirmationStatus)
def confirmation_status(cache: ConfirmationCache = Depends(get_cache)):
    return ConfirmationStatus(
        active_contexts=len(cache),
        timeout_seconds=cache.timeout,
        max_contexts=cache.max_contexts,
        **cache.metrics().model_dump(),
    )
