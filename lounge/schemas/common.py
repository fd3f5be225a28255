from decimal import Decimal
from typing import Annotated
from pydantic import BaseModel, PlainSerializer

# Decimal inside the engine, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]

class Actor(BaseModel):
    """Who performed an operation; stamped onto activity-log entries."""
    user_id: str
    username: str
    role: str = "staff"

SYSTEM_ACTOR = Actor(user_id="system", username="system", role="system")
