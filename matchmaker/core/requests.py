"""Pydantic models for inbound matchmaking requests."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from matchmaker.core.exceptions import ValidationError
from matchmaker.core.types import Player


class JoinQueueRequest(BaseModel):
    """Request body for joining the matchmaking queue."""

    model_config = ConfigDict(str_strip_whitespace=True)

    player_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    skill_rating: int = Field(ge=0, le=5000)
    latency: int = Field(ge=0, le=1000)
    region: str = Field(min_length=1)

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: str) -> str:
        return v.lower()

    def to_player(self) -> Player:
        return Player(
            id=self.player_id,
            username=self.username,
            skill_rating=self.skill_rating,
            latency=self.latency,
            region=self.region,
        )


def validate_join_request(data: dict) -> JoinQueueRequest:
    """Validate a raw join payload.

    Raises:
        ValidationError: If any attribute is missing or out of range
    """
    try:
        return JoinQueueRequest.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ValidationError(f"Invalid join request: {summary}", errors) from e
