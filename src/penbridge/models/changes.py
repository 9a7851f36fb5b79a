"""Change-set models used for save confirmation."""

from pydantic import BaseModel, Field

from .base import PageRef


class ChangeSet(BaseModel):
    """Net stroke additions/deletions for one page against its persisted snapshot."""

    page: PageRef
    additions: list[str] = Field(default_factory=list)
    deletions: list[str] = Field(default_factory=list)
    is_saved: bool = Field(
        default=False, description="Page already has a persisted snapshot"
    )

    @property
    def total(self) -> int:
        return len(self.additions) + len(self.deletions)

    @property
    def has_changes(self) -> bool:
        return self.total > 0


class ChangeSummary(BaseModel):
    """Totals across all pages with pending changes."""

    total_additions: int = 0
    total_deletions: int = 0
    pages_with_changes: int = 0
    changes: list[ChangeSet] = Field(default_factory=list)
