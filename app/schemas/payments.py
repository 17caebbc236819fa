from typing import Optional
from pydantic import BaseModel


class WebhookAck(BaseModel):
    ok: bool = True
    received: bool = True
    outcome: Optional[str] = None
    warning: Optional[str] = None
