"""Title-level comparison between an event's milestones and its template.

Only the presence of a title is compared (case-insensitively). Edits to the
description, category or timing of a milestone whose title still matches a
template milestone are not detected.

When titles repeat, matching uses the first title-equal entry in list order,
so each event milestone is reported at most once and a single template
milestone can "cover" several event milestones that share its title.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Set, Union

from steady.models import MilestoneTemplateInput


class DiffType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class MilestoneDiff:
    type: DiffType
    title: str
    event_milestone: Optional[Any] = None
    template_milestone: Optional[Any] = None

    @property
    def source(self) -> Any:
        if self.type == DiffType.ADDED:
            return self.event_milestone
        return self.template_milestone


def _normalize_title(title: Optional[str]) -> str:
    return (title or "").casefold()


def _find_by_title(title: str, candidates: Sequence[Any]) -> Optional[Any]:
    wanted = _normalize_title(title)
    return next((c for c in candidates if _normalize_title(c.title) == wanted), None)


def diff_milestones(
    event_milestones: Sequence[Any],
    template_milestones: Sequence[Any],
) -> List[MilestoneDiff]:
    """Return added entries (event order) followed by removed entries (template order)."""
    diffs: List[MilestoneDiff] = []

    for milestone in event_milestones:
        if _find_by_title(milestone.title, template_milestones) is None:
            diffs.append(
                MilestoneDiff(
                    type=DiffType.ADDED,
                    title=milestone.title,
                    event_milestone=milestone,
                )
            )

    for template_milestone in template_milestones:
        if _find_by_title(template_milestone.title, event_milestones) is None:
            diffs.append(
                MilestoneDiff(
                    type=DiffType.REMOVED,
                    title=template_milestone.title,
                    template_milestone=template_milestone,
                )
            )

    return diffs


def default_selection(diffs: Iterable[MilestoneDiff]) -> Set[str]:
    # Removals must be opted into explicitly.
    return {diff.title for diff in diffs if diff.type == DiffType.ADDED}


def select_diffs(diffs: Sequence[MilestoneDiff], titles: Iterable[str]) -> List[MilestoneDiff]:
    chosen = set(titles)
    return [diff for diff in diffs if diff.title in chosen]


def days_between(later: Union[date, datetime], earlier: Union[date, datetime]) -> int:
    """Whole days from ``earlier`` to ``later``, rounded to the nearest day."""
    if isinstance(later, datetime) or isinstance(earlier, datetime):
        later_dt = later if isinstance(later, datetime) else datetime.combine(later, datetime.min.time())
        earlier_dt = (
            earlier if isinstance(earlier, datetime) else datetime.combine(earlier, datetime.min.time())
        )
        return round((later_dt - earlier_dt).total_seconds() / 86400)
    return (later - earlier).days


def _as_input(milestone: Any) -> MilestoneTemplateInput:
    return MilestoneTemplateInput(
        title=milestone.title,
        description=milestone.description or None,
        category=milestone.category,
        days_before_event=milestone.days_before_event,
        estimated_hours=milestone.estimated_hours or None,
    )


def apply_diffs(
    template_milestones: Sequence[Any],
    selected: Sequence[MilestoneDiff],
    event_date: Union[date, datetime],
) -> List[MilestoneTemplateInput]:
    """Build the milestone list of the next template version.

    Added milestones get their lead time back from the event's date; removed
    ones are dropped by case-insensitive title. The result is ordered by
    ``days_before_event`` descending, longest lead time first.
    """
    working = [_as_input(milestone) for milestone in template_milestones]

    for diff in selected:
        if diff.type == DiffType.ADDED and diff.event_milestone is not None:
            milestone = diff.event_milestone
            days_before = days_between(event_date, milestone.due_date)
            working.append(
                MilestoneTemplateInput(
                    title=milestone.title,
                    description=milestone.description or None,
                    category=milestone.category,
                    days_before_event=max(0, days_before),
                    estimated_hours=getattr(milestone, "estimated_hours", None) or None,
                )
            )
        elif diff.type == DiffType.REMOVED:
            removed = _normalize_title(diff.title)
            working = [m for m in working if _normalize_title(m.title) != removed]

    working.sort(key=lambda m: m.days_before_event, reverse=True)
    return working


def build_changelog(selected: Iterable[MilestoneDiff]) -> str:
    changes = []
    for diff in selected:
        if diff.type == DiffType.ADDED:
            changes.append(f'Added "{diff.title}"')
        elif diff.type == DiffType.REMOVED:
            changes.append(f'Removed "{diff.title}"')
    return ", ".join(changes)
