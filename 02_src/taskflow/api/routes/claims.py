"""Work queue, claim, settings and history routes."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from ...app import Application
from ...models import Principal
from ..dependencies import create_principal_dependency


class AddItemsRequest(BaseModel):
    """Either a list of lines or one block of newline-separated text."""

    lines: list[str] | None = None
    text: str | None = None

    def all_lines(self) -> list[str]:
        lines = list(self.lines or [])
        if self.text:
            lines.extend(self.text.splitlines())
        return lines


class ClaimSettingsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    line_count: StrictInt = Field(alias="lineCount")
    cooldown_minutes: float = Field(alias="cooldownMinutes")


def create_claims_router(app: Application) -> APIRouter:
    """Create claims router."""
    router = APIRouter(prefix="/api", tags=["claims"])
    get_principal = create_principal_dependency(app)

    # Work queue
    @router.post("/queue", status_code=201)
    async def add_items(
        request: AddItemsRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        items = await app.queue.add_items(
            principal.team_id, principal.user_id, request.all_lines()
        )
        return {"added": len(items), "items": [item.to_dict() for item in items]}

    @router.get("/queue")
    async def list_items(principal: Principal = Depends(get_principal)) -> dict:
        items = await app.queue.list_items(principal.team_id)
        return {"count": len(items), "items": [item.to_dict() for item in items]}

    @router.delete("/queue/{item_id}")
    async def remove_item(
        item_id: str, principal: Principal = Depends(get_principal)
    ) -> dict:
        await app.queue.remove_item(principal.team_id, item_id)
        return {"removed": item_id}

    # Claims
    @router.post("/claims")
    async def claim(principal: Principal = Depends(get_principal)) -> dict:
        result = await app.claims.claim(principal.team_id, principal.user_id)
        return result.to_dict()

    @router.get("/claims")
    async def list_claimed(principal: Principal = Depends(get_principal)) -> dict:
        items = await app.claims.list_claimed(principal.team_id, principal.user_id)
        cooldown_until = await app.claims.active_cooldown(
            principal.team_id, principal.user_id
        )
        return {
            "items": [item.to_dict() for item in items],
            "cooldownUntil": cooldown_until.isoformat() if cooldown_until else None,
        }

    @router.post("/claims/release")
    async def release_claimed(principal: Principal = Depends(get_principal)) -> dict:
        released = await app.claims.release_claimed(
            principal.team_id, principal.user_id
        )
        return {"released": released}

    # Settings
    @router.get("/claims/settings")
    async def get_settings(principal: Principal = Depends(get_principal)) -> dict:
        settings = await app.claim_settings.get(principal.team_id)
        return settings.to_dict()

    @router.put("/claims/settings")
    async def update_settings(
        request: ClaimSettingsRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        settings = await app.claim_settings.update(
            principal.team_id,
            principal.role,
            request.line_count,
            request.cooldown_minutes,
        )
        return settings.to_dict()

    # History
    @router.get("/history")
    async def history(
        search: str | None = None,
        day: date | None = None,
        limit: int = Query(default=500),
        principal: Principal = Depends(get_principal),
    ) -> dict:
        entries = await app.history.list_entries(
            principal.team_id,
            principal.user_id,
            principal.role,
            search=search,
            day=day,
            limit=limit,
        )
        return {"entries": [entry.to_dict() for entry in entries]}

    return router
