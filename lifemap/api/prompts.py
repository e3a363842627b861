"""API endpoints for per-user prompt overrides."""

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel

from lifemap.core.auth_middleware import AuthContext, require_auth
from lifemap.core.errors import NotFoundError
from lifemap.core.logging import get_logger
from lifemap.core.prompt_templates import DEFAULT_PROMPTS, PLACEHOLDERS, PROMPT_TYPES
from lifemap.core.schemas_timeline import CustomPromptSave, PromptType
from lifemap.db import custom_prompts as prompts_db

logger = get_logger(__name__)

router = APIRouter(prefix="/prompts")


class PromptOut(BaseModel):
    """Effective template of one prompt type."""

    prompt_type: str
    default_prompt: str
    custom_prompt: str | None
    is_custom: bool


class PromptListResponse(BaseModel):
    prompts: list[PromptOut]
    placeholders: list[str]


@router.get("", response_model=PromptListResponse)
async def list_prompts(
    auth: AuthContext = Depends(require_auth),
) -> PromptListResponse:
    """List every prompt type with its default and the caller's override."""
    overrides = {
        row["prompt_type"]: row["custom_prompt"]
        for row in prompts_db.list_active_prompts(auth.user_id)
    }

    return PromptListResponse(
        prompts=[
            PromptOut(
                prompt_type=prompt_type,
                default_prompt=DEFAULT_PROMPTS[prompt_type],
                custom_prompt=overrides.get(prompt_type),
                is_custom=prompt_type in overrides,
            )
            for prompt_type in PROMPT_TYPES
        ],
        placeholders=[f"{{{{{name}}}}}" for name in PLACEHOLDERS],
    )


@router.put("/{prompt_type}", response_model=PromptOut)
async def save_prompt(
    body: CustomPromptSave,
    prompt_type: PromptType = Path(..., description="Prompt type"),
    auth: AuthContext = Depends(require_auth),
) -> PromptOut:
    """Save the caller's override for a prompt type."""
    stored = prompts_db.upsert_prompt(auth.user_id, prompt_type, body.custom_prompt)
    logger.info(f"Saved custom {prompt_type} prompt for user {auth.user_id}")

    return PromptOut(
        prompt_type=prompt_type,
        default_prompt=DEFAULT_PROMPTS[prompt_type],
        custom_prompt=stored.get("custom_prompt", body.custom_prompt),
        is_custom=True,
    )


@router.delete("/{prompt_type}", status_code=204)
async def reset_prompt(
    prompt_type: PromptType = Path(..., description="Prompt type"),
    auth: AuthContext = Depends(require_auth),
) -> None:
    """Reset a prompt type to its default."""
    if not prompts_db.delete_prompt(auth.user_id, prompt_type):
        raise NotFoundError("Custom prompt", prompt_type)
