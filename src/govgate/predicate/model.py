"""
Predicate tree models.

A predicate is a recursive expression evaluated against a Resource:

    Leaf forms:      Exists, Equals, MemberOf
    Composite forms: And, Or, Not

Each model carries a ``kind`` discriminator so a Predicate can be matched
exhaustively with isinstance checks. Operands may hold a ParameterRef until
parameters are bound; a bound ("closed") predicate holds literals only.

Field paths are stored in canonical form: ``type``, ``location``, ``name``,
``scopePath`` or ``tags.<key>``.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ParameterRef(BaseModel):
    """Placeholder for a policy parameter, written ``[parameters('name')]`` in documents."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return f"[parameters('{self.name}')]"


class Exists(BaseModel):
    """True when the field is present (and ``expected`` is true), or absent (and false)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["exists"] = "exists"
    field: str
    expected: Any = True


class Equals(BaseModel):
    """True when the field is present and equal to ``value``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["equals"] = "equals"
    field: str
    value: Any


class MemberOf(BaseModel):
    """True when the field is present and its value is one of ``values``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["in"] = "in"
    field: str
    values: Any


class And(BaseModel):
    """True when every child is true (an empty And is true)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["allOf"] = "allOf"
    children: tuple["Predicate", ...]


class Or(BaseModel):
    """True when any child is true (an empty Or is false)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["anyOf"] = "anyOf"
    children: tuple["Predicate", ...]


class Not(BaseModel):
    """Negation of a single child."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["not"] = "not"
    child: "Predicate"


Predicate = Annotated[
    Union[Exists, Equals, MemberOf, And, Or, Not],
    Field(discriminator="kind"),
]

And.model_rebuild()
Or.model_rebuild()
Not.model_rebuild()
