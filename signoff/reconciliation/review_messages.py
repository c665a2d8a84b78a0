"""Reviewer-facing wording for each reason code."""

from dataclasses import dataclass

from signoff.reconciliation.models import ReasonCode


@dataclass(frozen=True)
class ReviewMessage:
    title: str
    message: str
    action: str


_MESSAGES: dict[ReasonCode, ReviewMessage] = {
    ReasonCode.CAPTURE_ZONE_NOT_CONFIGURED: ReviewMessage(
        title="Capture zone not configured",
        message="No capture zone is saved for this sender. Draw the rectangle and save it, or enter the work order number manually.",
        action="Update template",
    ),
    ReasonCode.ALREADY_MATCHED: ReviewMessage(
        title="Already signed",
        message="This work order already has a signed document attached. Nothing was changed.",
        action="View work order",
    ),
    ReasonCode.ALREADY_MATCHED_CONCURRENT: ReviewMessage(
        title="Already signed",
        message="Another submission attached a signed document to this work order first. Nothing was changed.",
        action="View work order",
    ),
    ReasonCode.NO_IDENTIFIER: ReviewMessage(
        title="Work order number not detected",
        message="No work order number was detected in the document. Enter it manually to confirm.",
        action="Enter number manually",
    ),
    ReasonCode.LOW_CONFIDENCE: ReviewMessage(
        title="Document quality, please verify",
        message="The document quality makes extraction uncertain. Verify the work order number or enter it manually.",
        action="Enter number manually",
    ),
    ReasonCode.WORK_ORDER_NOT_FOUND: ReviewMessage(
        title="Original work order not found",
        message="No work order with this number exists. Check the number or create the work order first.",
        action="Fix work order number",
    ),
}


def review_message(reason: ReasonCode) -> ReviewMessage:
    return _MESSAGES[reason]
