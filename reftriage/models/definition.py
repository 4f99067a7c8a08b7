"""
Rule Definition Models - Declarative Input for the Trigger Table

These models describe what an external configuration source supplies.
They are deliberately lenient about content (empty targets, bad regexes):
TriggerTable.build collects every such problem and rejects the table as a
whole. Unknown fields are refused outright.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reftriage.models.rule import MatcherSpec, RuleType
from reftriage.models.signal import SignalKind


class RuleDefinition(BaseModel):
    """One rule as written in a rule file."""

    id: str
    type: RuleType
    matchers: list[MatcherSpec] = Field(default_factory=list)
    targets: list[str] = Field(default_factory=list, description="Document ids from the catalog")
    priority_tier: int = 0
    question: Optional[str] = Field(None, description="Binary question (DECISION_NODE only)")
    if_true: Optional[str] = Field(None, description="Child node taken on yes")
    if_false: Optional[str] = Field(None, description="Child node taken on no")

    model_config = ConfigDict(extra="forbid")


class RequirementDefinition(BaseModel):
    kind: SignalKind
    value: str

    model_config = ConfigDict(extra="forbid")


class ContractDefinition(BaseModel):
    """A contract attached to a document category."""

    category: str
    requires: list[RequirementDefinition] = Field(default_factory=list)
    message: str = ""
    question: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class TriggerTableDefinition(BaseModel):
    """
    Complete declarative input for one Trigger Table.

    ``documents`` is the catalog of known document ids and their category;
    rules reference targets by id only.
    """

    version: str = "1"
    documents: dict[str, str] = Field(default_factory=dict)
    fallback_category: str = "root"
    rules: list[RuleDefinition] = Field(default_factory=list)
    contracts: list[ContractDefinition] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")
