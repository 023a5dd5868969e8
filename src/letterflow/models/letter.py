"""Pydantic models for Letter requests and views."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from letterflow.models.enums import LetterActionType, ReviewerStatus, WorkflowStatus
from letterflow.models.placement import Placement


class LetterFromTemplateCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    template_id: str
    form_data: dict[str, Any] = Field(default_factory=dict)
    name: str | None = None
    comment: str | None = None
    placements: list[Placement] = Field(default_factory=list)


class LetterFromPdfCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    original_file_id: str
    placements: list[Placement] = Field(default_factory=list)
    reviewers: list[str] = Field(default_factory=list)
    approver: str | None = None
    name: str | None = None
    comment: str | None = None


class StepApprove(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comment: str | None = None


class StepReject(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str = ""


class StepReassign(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_user_id: str
    reason: str | None = None


class FinalApprove(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comment: str | None = None
    placements: list[Placement] = Field(default_factory=list)
    name: str | None = None


class Resubmit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comment: str = ""
    new_signed_file_id: str | None = None


class CommentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comment: str = ""


class ReviewerView(BaseModel):
    reviewer_id: str
    user_id: str
    sequence_order: int
    status: ReviewerStatus
    acted_at: datetime | None = None
    reassigned_from_user_id: str | None = None


class ActionLogView(BaseModel):
    log_id: str
    user_id: str
    action_type: LetterActionType
    comment: str | None = None
    details: dict[str, Any] | None = None
    created_at: datetime | None = None


class LetterSummary(BaseModel):
    letter_id: str
    name: str | None = None
    template_id: str | None = None
    creator_id: str
    workflow_status: WorkflowStatus
    current_step_index: int | None = None
    next_action_by_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LetterView(LetterSummary):
    original_file_id: str | None = None
    form_data: dict[str, Any] | None = None
    signed_pdf_url: str | None = None
    final_signed_pdf_url: str | None = None
    public_link: str | None = None
    qr_code_url: str | None = None
    placements: list[dict[str, Any]] = Field(default_factory=list)
    deleted_at: datetime | None = None
    reviewers: list[ReviewerView] = Field(default_factory=list)
    action_logs: list[ActionLogView] = Field(default_factory=list)


class PublicLetterView(BaseModel):
    letter_id: str
    name: str | None = None
    final_signed_pdf_url: str | None = None
    public_link: str | None = None
    created_at: datetime | None = None


class ViewUrl(BaseModel):
    view_url: str
    expires_in: int
