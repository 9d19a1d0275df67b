"""Team member routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...app import Application
from ...models import Principal
from ..dependencies import create_principal_dependency


class CreateMemberRequest(BaseModel):
    name: str
    email: str
    role: str = "member"


def create_members_router(app: Application) -> APIRouter:
    """Create members router."""
    router = APIRouter(prefix="/api/members", tags=["members"])
    get_principal = create_principal_dependency(app)

    @router.get("")
    async def list_members(principal: Principal = Depends(get_principal)) -> dict:
        return {"members": await app.members.list_members(principal.team_id)}

    @router.post("", status_code=201)
    async def create_member(
        request: CreateMemberRequest, principal: Principal = Depends(get_principal)
    ) -> dict:
        user = await app.members.create_member(
            principal.team_id,
            principal.role,
            request.name,
            request.email,
            member_role=request.role,
        )
        return user.to_dict()

    return router
