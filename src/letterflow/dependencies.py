"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from letterflow.errors.exceptions import AuthenticationError
from letterflow.services.letter_access import LetterAccessService
from letterflow.services.letter_base import LetterDependencies
from letterflow.services.letter_creation import LetterCreationService
from letterflow.services.letter_workflow import LetterWorkflowService


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_trace_id(request: Request) -> str:
    """Extract trace_id from request state (set by middleware)."""
    return getattr(request.state, "trace_id", "unknown")


async def get_current_user(request: Request) -> dict:
    """Return the authenticated user dict or raise 401."""
    user = getattr(request.state, "user", {})
    if "_auth_error" in (user or {}):
        raise AuthenticationError(user["_auth_error"])
    if not user or user.get("sub") in ("anonymous", ""):
        raise AuthenticationError("Authentication required")
    return user


def get_letter_dependencies(request: Request) -> LetterDependencies:
    return request.app.state.letter_deps


def get_creation_service(deps: Annotated[LetterDependencies, Depends(get_letter_dependencies)]) -> LetterCreationService:
    return LetterCreationService(deps)


def get_workflow_service(deps: Annotated[LetterDependencies, Depends(get_letter_dependencies)]) -> LetterWorkflowService:
    return LetterWorkflowService(deps)


def get_access_service(deps: Annotated[LetterDependencies, Depends(get_letter_dependencies)]) -> LetterAccessService:
    return LetterAccessService(deps)


# Type aliases for dependency injection
DBSession = Annotated[object, Depends(get_db)]
TraceId = Annotated[str, Depends(get_trace_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CreationService = Annotated[LetterCreationService, Depends(get_creation_service)]
WorkflowService = Annotated[LetterWorkflowService, Depends(get_workflow_service)]
AccessService = Annotated[LetterAccessService, Depends(get_access_service)]
