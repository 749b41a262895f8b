from typing import Optional
from pydantic import BaseModel, StrictStr


class ProductCreate(BaseModel):
    # Missing name is answered by the handler with a 400
    name: Optional[StrictStr] = None


class Error(BaseModel):
    error: str
