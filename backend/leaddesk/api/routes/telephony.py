import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from leaddesk.core.config import get_settings
from leaddesk.core.database import get_db
from leaddesk.core.errors import Unauthorized, ValidationError
from leaddesk.core.security import verify_twilio_signature
from leaddesk.services.calls import apply_status_callback

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telephony", tags=["telephony"])


@router.post("/status")
async def status_callback(request: Request, db: Session = Depends(get_db)):
    """Twilio call status webhook (form-encoded CallSid, CallStatus, CallDuration)."""
    form = await request.form()
    params = {k: str(v) for k, v in form.items()}

    settings = get_settings()
    if settings.TWILIO_AUTH_TOKEN:
        url = settings.TWILIO_STATUS_CALLBACK_URL or str(request.url)
        signature = request.headers.get("x-twilio-signature", "")
        if not verify_twilio_signature(settings.TWILIO_AUTH_TOKEN, url, params, signature):
            logger.warning("Rejected status callback with invalid signature")
            raise Unauthorized("Invalid signature")

    call_sid = params.get("CallSid", "").strip()
    call_status = params.get("CallStatus", "").strip()
    if not call_sid or not call_status:
        raise ValidationError("CallSid and CallStatus are required")

    duration = None
    raw_duration = params.get("CallDuration")
    if raw_duration:
        try:
            duration = int(raw_duration)
        except ValueError:
            raise ValidationError("CallDuration must be an integer")

    matched = apply_status_callback(db, call_sid, call_status, duration)
    return {"success": True, "matched": matched}
