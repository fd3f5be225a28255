from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from lounge.schemas.bookings import BookingTypeLiteral

class SessionGroupIn(BaseModel):
    category: str
    booking_type: BookingTypeLiteral
    group_name: Optional[str] = None

class GroupMemberIn(BaseModel):
    booking_id: str

class SessionGroupOut(BaseModel):
    id: str
    group_code: str
    group_name: str
    category: str
    booking_type: BookingTypeLiteral
    dissolved_at: Optional[datetime] = None
    member_ids: list[str] = []

class GroupOperationOut(BaseModel):
    group_id: str
    action: str
    succeeded: list[str]
