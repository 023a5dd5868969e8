"""Unauthenticated verification endpoint reached through the QR code."""

from fastapi import APIRouter

from letterflow.dependencies import AccessService

router = APIRouter(tags=["Public"])


@router.get("/public/letters/{letter_id}")
async def get_public_letter(letter_id: str, service: AccessService) -> dict:
    details = await service.get_public_details(letter_id)
    return details.model_dump(mode="json")
