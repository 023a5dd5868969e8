"""String enums for letter workflow state."""

from enum import StrEnum

# Reserved sequence order of the final-approver slot. Reviewer slots are
# numbered from 1 and must stay below this bound.
FINAL_APPROVER_ORDER = 999


class WorkflowStatus(StrEnum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewerStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    REASSIGNED = "reassigned"


class LetterActionType(StrEnum):
    SUBMIT = "submit"
    APPROVE_REVIEW = "approve_review"
    REJECT_REVIEW = "reject_review"
    REASSIGN_REVIEW = "reassign_review"
    FINAL_APPROVE = "final_approve"
    FINAL_REJECT = "final_reject"
    RESUBMIT = "resubmit"
    COMMENT = "comment"
    UPLOAD_REVISION = "upload_revision"
    DELETE = "delete"
    RESTORE = "restore"
    PERMANENT_DELETE = "permanent_delete"


class PlacementType(StrEnum):
    SIGNATURE = "signature"
    STAMP = "stamp"
    QRCODE = "qrcode"


class NotificationKind(StrEnum):
    REVIEW_REQUEST = "letter_review_request"
    APPROVAL_REQUEST = "letter_approval_request"
    REVIEW_APPROVED = "letter_review_approved"
    REVIEW_REJECTED = "letter_review_rejected"
    REASSIGNED = "letter_reassigned"
    FINAL_APPROVED = "letter_final_approved"
    FINAL_REJECTED = "letter_final_rejected"
    RESUBMITTED = "letter_resubmitted"


ACTIVE_STATUSES = (WorkflowStatus.PENDING_REVIEW, WorkflowStatus.PENDING_APPROVAL)
