from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


# ---------------------------------------------------------------------------
# A key written as ``channels:`` with nothing after it loads as None
# ---------------------------------------------------------------------------

def _none_as_empty(v: object) -> object:
    return [] if v is None else v


RuleList = Annotated[list[str], BeforeValidator(_none_as_empty)]


def _coerce_bool(v: object) -> object:
    if isinstance(v, str):
        return v.lower() in ("true", "1", "yes")
    return v


CoercedBool = Annotated[bool, BeforeValidator(_coerce_bool)]


class MuteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    channels: RuleList = Field(default_factory=list)
    users:    RuleList = Field(default_factory=list)


def _none_as_mute(v: object) -> object:
    return {} if v is None else v


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    token:   str                                                  = ""
    mute:    Annotated[MuteConfig, BeforeValidator(_none_as_mute)] = Field(default_factory=MuteConfig)
    color:   CoercedBool | None                                   = None
    log_dir: str                                                  = ""
