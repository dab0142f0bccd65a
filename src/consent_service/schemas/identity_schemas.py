from typing import List, Optional

from pydantic import Field

from .common_schemas import CamelModel


class ContextBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class ContextCreate(ContextBase):
    pass


class ContextUpdate(ContextBase):
    pass


class ContextResponse(ContextBase):
    id: str


class AttributeBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    value: Optional[str] = Field(None, max_length=2000)
    visible: bool = False
    context_ids: List[str] = Field(default_factory=list)


class AttributeCreate(AttributeBase):
    pass


class AttributeUpdate(AttributeBase):
    pass


class AttributeResponse(AttributeBase):
    id: str


class UserProfileResponse(CamelModel):
    id: str
    username: str
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    contexts: List[ContextResponse] = Field(default_factory=list)
    attributes: List[AttributeResponse] = Field(default_factory=list)
