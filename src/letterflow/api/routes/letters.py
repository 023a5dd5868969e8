"""Letter workflow API routes."""

import logging

from fastapi import APIRouter, Response

from letterflow.dependencies import AccessService, CreationService, CurrentUser, WorkflowService
from letterflow.models.letter import (
    CommentCreate,
    FinalApprove,
    LetterFromPdfCreate,
    LetterFromTemplateCreate,
    Resubmit,
    StepApprove,
    StepReassign,
    StepReject,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Letters"])


# -- creation ----------------------------------------------------------------


@router.post("/letters", status_code=201)
async def create_letter(body: LetterFromTemplateCreate, user: CurrentUser, service: CreationService) -> dict:
    view = await service.create_from_template(user["sub"], body)
    return view.model_dump(mode="json")


@router.post("/letters/from-pdf-interactive", status_code=201)
async def create_letter_from_pdf(body: LetterFromPdfCreate, user: CurrentUser, service: CreationService) -> dict:
    view = await service.create_from_interactive_pdf(user["sub"], body)
    return view.model_dump(mode="json")


# -- listings ------------------------------------------------------------------


@router.get("/letters")
async def list_my_letters(user: CurrentUser, service: AccessService) -> list[dict]:
    return [s.model_dump(mode="json") for s in await service.list_created_by(user["sub"])]


@router.get("/letters/pending-my-action")
async def list_pending_my_action(user: CurrentUser, service: AccessService) -> list[dict]:
    return [s.model_dump(mode="json") for s in await service.list_pending_my_action(user["sub"])]


@router.get("/letters/my-rejected")
async def list_my_rejected(user: CurrentUser, service: AccessService) -> list[dict]:
    return [s.model_dump(mode="json") for s in await service.list_my_rejected(user["sub"])]


@router.get("/letters/deleted")
async def list_deleted(user: CurrentUser, service: AccessService) -> list[dict]:
    return [s.model_dump(mode="json") for s in await service.list_deleted(user["sub"])]


# -- single letter ---------------------------------------------------------------


@router.get("/letters/{letter_id}")
async def get_letter(letter_id: str, user: CurrentUser, service: AccessService) -> dict:
    view = await service.find_by_id(letter_id, user["sub"])
    return view.model_dump(mode="json")


@router.get("/letters/{letter_id}/view-url")
async def get_letter_view_url(letter_id: str, user: CurrentUser, service: AccessService) -> dict:
    view_url = await service.generate_signed_pdf_view_url(letter_id, user["sub"])
    return view_url.model_dump(mode="json")


@router.post("/letters/{letter_id}/approve-review")
async def approve_review(
    letter_id: str, body: StepApprove, user: CurrentUser, service: WorkflowService
) -> dict:
    view = await service.approve_step(letter_id, user["sub"], body.comment)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/reject-review")
async def reject_review(letter_id: str, body: StepReject, user: CurrentUser, service: WorkflowService) -> dict:
    view = await service.reject_step(letter_id, user["sub"], body.reason)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/reassign-review")
async def reassign_review(
    letter_id: str, body: StepReassign, user: CurrentUser, service: WorkflowService
) -> dict:
    view = await service.reassign_step(letter_id, user["sub"], body.new_user_id, body.reason)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/final-approve")
async def final_approve(letter_id: str, body: FinalApprove, user: CurrentUser, service: WorkflowService) -> dict:
    view = await service.final_approve(letter_id, user["sub"], body)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/final-approve-single")
async def final_approve_single(
    letter_id: str, body: FinalApprove, user: CurrentUser, service: WorkflowService
) -> dict:
    view = await service.final_approve_single(letter_id, user["sub"], body)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/final-reject")
async def final_reject(letter_id: str, body: StepReject, user: CurrentUser, service: WorkflowService) -> dict:
    view = await service.final_reject(letter_id, user["sub"], body.reason)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/resubmit")
async def resubmit(letter_id: str, body: Resubmit, user: CurrentUser, service: WorkflowService) -> dict:
    view = await service.resubmit(letter_id, user["sub"], body)
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/comments", status_code=201)
async def add_comment(letter_id: str, body: CommentCreate, user: CurrentUser, service: AccessService) -> dict:
    view = await service.add_comment(letter_id, user["sub"], body.comment)
    return view.model_dump(mode="json")


# -- lifecycle -------------------------------------------------------------------


@router.delete("/letters/{letter_id}")
async def delete_letter(letter_id: str, user: CurrentUser, service: AccessService) -> dict:
    view = await service.soft_delete(letter_id, user["sub"])
    return view.model_dump(mode="json")


@router.post("/letters/{letter_id}/restore")
async def restore_letter(letter_id: str, user: CurrentUser, service: AccessService) -> dict:
    view = await service.restore(letter_id, user["sub"])
    return view.model_dump(mode="json")


@router.delete("/letters/{letter_id}/permanent", status_code=204)
async def permanently_delete_letter(letter_id: str, user: CurrentUser, service: AccessService) -> Response:
    await service.permanent_delete(letter_id, user["sub"])
    return Response(status_code=204)
