"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel, Field

from forest_oracle.models import CharacterClass


class SelectWorldBody(BaseModel):
    world_key: str
    party_size: int = Field(default=1, ge=1, le=4)


class PartyMember(BaseModel):
    name: str = Field(min_length=1)
    cls: CharacterClass


class PartyBody(BaseModel):
    players: list[PartyMember] = Field(min_length=1, max_length=4)


class StartBody(BaseModel):
    seed: str | None = None


class TurnBody(BaseModel):
    player_index: int = Field(default=0, ge=0)
    action: str = ""
    is_intro: bool = False


class SetActiveBody(BaseModel):
    index: int = Field(ge=0)


class SaveBody(BaseModel):
    name: str = Field(min_length=1)
