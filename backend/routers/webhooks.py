# routers/webhooks.py — Database webhook receivers
import os
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header
from pydantic import BaseModel

from errors import AuthorizationError

logger = logging.getLogger("fourgears.webhooks")

router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")


class SubmissionRecord(BaseModel):
    id: str
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    notes: Optional[str] = None
    test_email: Optional[str] = None
    phone_number: Optional[str] = None
    status: Optional[str] = None


class SubmissionWebhook(BaseModel):
    """Row-insert payload; the new row is under "record" """
    type: Optional[str] = None
    table: Optional[str] = None
    record: SubmissionRecord


def _check_secret(provided: Optional[str]) -> None:
    if not WEBHOOK_SECRET:
        return
    if not provided or not hmac.compare_digest(provided, WEBHOOK_SECRET):
        raise AuthorizationError("Invalid webhook secret")


def notification_text(record: SubmissionRecord) -> str:
    return "\n".join([
        "New 4Gears Project Request!",
        "---------------------------",
        f"Project: {record.project_name or 'N/A'}",
        f"Customer Notes: {record.notes}",
        f"Test Email: {record.test_email}",
        f"Contact: {record.phone_number}",
        f"Status: {record.status}",
    ])


@router.post("/submission-created")
async def submission_created(
    payload: SubmissionWebhook,
    x_webhook_secret: Optional[str] = Header(None),
):
    """Notify admins of a new submission. Delivery is a log line for now."""
    _check_secret(x_webhook_secret)
    record = payload.record
    logger.info(f"🚀 New submission received: {record.id} for project {record.project_id}")
    logger.info("📨 Sending notification to admins...\n" + notification_text(record))
    return {"message": "Notification sent successfully", "submission_id": record.id}
