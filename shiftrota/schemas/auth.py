from pydantic import BaseModel
import uuid


class TokenData(BaseModel):
    user_id: uuid.UUID
    tenant_id: uuid.UUID
    role: str
