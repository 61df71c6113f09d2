import logging
from fastapi import APIRouter, Depends
from glowstore.api.deps import require_admin
from glowstore.db.supabase import get_client, first
from glowstore.models.schemas import SubscribeRequest, NewsletterSend
from glowstore.services.notifications import send_bulk

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/subscribe")
def subscribe(payload: SubscribeRequest):
    client = get_client()
    email = payload.email.lower()
    if first(client.table("newsletter_subscribers").select("id").eq("email", email).execute()):
        return {"subscribed": True, "already_subscribed": True}
    client.table("newsletter_subscribers").insert({"email": email}).execute()
    return {"subscribed": True, "already_subscribed": False}

@router.get("/subscribers")
def list_subscribers(admin=Depends(require_admin)):
    res = get_client().table("newsletter_subscribers").select("*").order("created_at", desc=True).execute()
    return res.data or []

@router.post("/send")
def send_newsletter(payload: NewsletterSend, admin=Depends(require_admin)):
    res = get_client().table("newsletter_subscribers").select("email").execute()
    recipients = sorted({row["email"] for row in res.data or [] if row.get("email")})
    result = send_bulk(recipients, payload.subject, payload.html)
    logger.info("Newsletter '%s': %s sent, %s failed", payload.subject, result["sent"], result["failed"])
    return result
