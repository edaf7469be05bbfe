"""
Resolution Models
Outcome of matching a spoken/typed party name against Tally ledgers
"""

from typing import Annotated, List, Literal, Union
from pydantic import BaseModel, Field


class Candidate(BaseModel):
    name: str
    parent: str = ""
    score: int = 0


class ExactMatch(BaseModel):
    kind: Literal["exact"] = "exact"
    name: str


class SingleMatch(BaseModel):
    kind: Literal["single"] = "single"
    name: str


class MultipleMatch(BaseModel):
    kind: Literal["multiple"] = "multiple"
    candidates: List[Candidate]


class NoMatch(BaseModel):
    kind: Literal["none"] = "none"


PartyResolution = Annotated[
    Union[ExactMatch, SingleMatch, MultipleMatch, NoMatch],
    Field(discriminator="kind"),
]
