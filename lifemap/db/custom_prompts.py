"""CRUD operations for per-user prompt overrides."""

from typing import Any
from uuid import UUID

from lifemap.core.logging import get_logger
from lifemap.db.supabase_client import get_supabase

logger = get_logger(__name__)


def list_active_prompts(user_id: UUID) -> list[dict[str, Any]]:
    """List the active overrides of a user."""
    supabase = get_supabase()

    response = (
        supabase.table("custom_prompts")
        .select("prompt_type, custom_prompt, is_active")
        .eq("user_id", str(user_id))
        .eq("is_active", True)
        .execute()
    )

    return response.data or []


def get_active_prompt(user_id: UUID, prompt_type: str) -> str | None:
    """Get the active override text for one prompt type, if any."""
    supabase = get_supabase()

    response = (
        supabase.table("custom_prompts")
        .select("custom_prompt")
        .eq("user_id", str(user_id))
        .eq("prompt_type", prompt_type)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )

    if not response.data:
        return None
    return response.data[0].get("custom_prompt") or None


def upsert_prompt(user_id: UUID, prompt_type: str, custom_prompt: str) -> dict[str, Any]:
    """Save the single active override for (user, prompt type)."""
    supabase = get_supabase()

    response = (
        supabase.table("custom_prompts")
        .upsert(
            {
                "user_id": str(user_id),
                "prompt_type": prompt_type,
                "custom_prompt": custom_prompt,
                "is_active": True,
            },
            on_conflict="user_id,prompt_type",
        )
        .execute()
    )

    return response.data[0] if response.data else {}


def delete_prompt(user_id: UUID, prompt_type: str) -> bool:
    """Reset a prompt type to its default by removing the override."""
    supabase = get_supabase()

    response = (
        supabase.table("custom_prompts")
        .delete()
        .eq("user_id", str(user_id))
        .eq("prompt_type", prompt_type)
        .execute()
    )

    return bool(response.data)
