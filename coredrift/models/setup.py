"""Setup (strategy playbook) data models."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from coredrift.models.document import Document


class Rule(Document):
    """A checklist item within a setup."""

    id: str = Field(..., min_length=1, description="Rule ID")
    text: str = Field(..., min_length=1, description="Rule text")
    stats: Optional[dict] = Field(default=None, description="Per-rule aggregate stats")


class RuleGroup(Document):
    """An ordered group of rules."""

    name: str = Field(..., min_length=1, description="Group name")
    rules: list[Rule] = Field(default_factory=list, description="Rules in order")


class Setup(Document):
    """A named trading strategy with a rule checklist."""

    id: Optional[str] = Field(default=None, description="Repository-assigned ID")
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    name: str = Field(..., min_length=1, description="Setup name")
    description: str = Field(default="", description="Setup description")
    color: Optional[str] = Field(default=None, description="Palette entry")
    rule_groups: list[RuleGroup] = Field(default_factory=list, description="Rule groups")
    is_deleted: bool = Field(default=False, description="Soft-delete flag")
    created_at: Optional[datetime] = Field(default=None, description="Creation time")
    updated_at: Optional[datetime] = Field(default=None, description="Last update time")

    def rule_ids(self) -> set[str]:
        """IDs of every rule across all groups."""
        return {rule.id for group in self.rule_groups for rule in group.rules}
