# lounge/routers/groups.py
from fastapi import APIRouter, Depends
from lounge.deps import get_ctx
from lounge.schemas.groups import GroupMemberIn, GroupOperationOut, SessionGroupIn, SessionGroupOut
from lounge.services import groups
from lounge.services.uow import ServiceContext

router = APIRouter(prefix="/groups", tags=["groups"])

@router.post("", response_model=SessionGroupOut)
def create_group(body: SessionGroupIn, ctx: ServiceContext = Depends(get_ctx)):
    g = groups.create_group(ctx, body.category, body.booking_type, body.group_name)
    return groups.serialize_group(ctx.db, g)

@router.get("", response_model=list[SessionGroupOut])
def list_groups(include_dissolved: bool = False, ctx: ServiceContext = Depends(get_ctx)):
    return [groups.serialize_group(ctx.db, g) for g in groups.list_groups(ctx.db, include_dissolved)]

@router.get("/{group_id}", response_model=SessionGroupOut)
def get_group(group_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return groups.serialize_group(ctx.db, groups.get_group(ctx.db, group_id))

@router.post("/{group_id}/members", response_model=SessionGroupOut)
def add_member(group_id: str, body: GroupMemberIn, ctx: ServiceContext = Depends(get_ctx)):
    groups.add_member(ctx, group_id, body.booking_id)
    return groups.serialize_group(ctx.db, groups.get_group(ctx.db, group_id))

@router.post("/{group_id}/pause", response_model=GroupOperationOut)
def pause_all(group_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return GroupOperationOut(group_id=group_id, action="pause", succeeded=groups.pause_all(ctx, group_id))

@router.post("/{group_id}/resume", response_model=GroupOperationOut)
def resume_all(group_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return GroupOperationOut(group_id=group_id, action="resume", succeeded=groups.resume_all(ctx, group_id))

@router.post("/{group_id}/complete", response_model=GroupOperationOut)
def complete_all(group_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return GroupOperationOut(group_id=group_id, action="complete", succeeded=groups.complete_all(ctx, group_id))

@router.post("/{group_id}/cancel", response_model=GroupOperationOut)
def cancel_all(group_id: str, ctx: ServiceContext = Depends(get_ctx)):
    return GroupOperationOut(group_id=group_id, action="cancel", succeeded=groups.cancel_all(ctx, group_id))
