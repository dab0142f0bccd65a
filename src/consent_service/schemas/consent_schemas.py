from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from consent_service.models.consent import TokenValidity
from consent_service.utils import ensure_utc

from .common_schemas import CamelModel


class ConsentCreateRequest(CamelModel):
    client_id: str = Field(..., min_length=1, max_length=200)
    context_id: Optional[str] = None
    shared_attribute_ids: List[str] = Field(default_factory=list)
    validity_policy: TokenValidity = TokenValidity.ONE_HOUR

    @field_validator("shared_attribute_ids")
    def deduplicate(cls, v: List[str]) -> List[str]:
        # Preserve order, drop repeats
        return list(dict.fromkeys(v))

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "clientId": "https://shop.example.com",
                    "contextId": "ctx-1a2b3c4d",
                    "sharedAttributeIds": ["attr-5e6f7a8b"],
                    "validityPolicy": "ONE_DAY",
                }
            ]
        }
    )


class ConsentResponse(CamelModel):
    id: str
    client_id: str
    context_id: Optional[str] = None
    # ORM attribute names differ from the public field names
    shared_attribute_ids: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("shared_attributes", "sharedAttributeIds"),
        serialization_alias="sharedAttributeIds",
    )
    validity_policy: TokenValidity = Field(
        ...,
        validation_alias=AliasChoices("token_validity", "validityPolicy"),
        serialization_alias="validityPolicy",
    )
    created_at: datetime
    last_updated_at: datetime
    accessed_at: List[datetime] = Field(default_factory=list)

    @field_validator("created_at", "last_updated_at")
    def as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("accessed_at")
    def all_as_utc(cls, v: List[datetime]) -> List[datetime]:
        return [ensure_utc(moment) for moment in v]


class ConsentListResponse(CamelModel):
    consents: List[ConsentResponse]
    count: int
