# lounge/routers/devices.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session
from lounge.db import get_db
from lounge.deps import require_actor, require_role
from lounge.models.core import DeviceConfig
from lounge.schemas.common import Actor
from lounge.util.audit import audit

router = APIRouter(prefix="/devices", tags=["devices"])

class DeviceConfigIn(BaseModel):
    category: str
    seats: list[str]

def _out(c: DeviceConfig) -> dict:
    return {"id": c.id, "category": c.category, "seats": list(c.seats or [])}

@router.put("")
def upsert_device(body: DeviceConfigIn, db: Session = Depends(get_db), actor: Actor = Depends(require_role("manager"))):
    c = db.scalars(select(DeviceConfig).where(DeviceConfig.category == body.category)).first()
    if not c:
        c = DeviceConfig(category=body.category)
        db.add(c)
    c.seats = list(dict.fromkeys(body.seats))
    db.flush()
    audit(db, actor, "device_config_saved", "device_config", c.id, details={"seats": c.seats})
    db.commit()
    return _out(c)

@router.get("")
def list_devices(db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return [_out(c) for c in db.scalars(select(DeviceConfig).order_by(DeviceConfig.category))]
