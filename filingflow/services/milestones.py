"""
FilingFlow — Milestone Resolver.

Given a stage transition, works out which milestones to stamp and which to
retract:

1. Entering a stage with a milestone sets it to (now, acting user).
   Re-entering the same stage re-stamps it.
2. A backward move clears every milestone belonging to a stage after the
   target, up to and including the stage being left.
3. Set wins over clear for the target stage's own milestone.

Cleared milestones are not restored from earlier history; history entries
remain the permanent record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from filingflow.services.stage_catalog import Milestone, Stage, workflow_for, parse_stage


@dataclass(frozen=True)
class MilestoneSet:
    at: datetime
    user_id: int | None
    user_name: str | None


@dataclass(frozen=True)
class MilestoneDelta:
    """Typed set/clear operations keyed by milestone."""

    sets: dict[Milestone, MilestoneSet] = field(default_factory=dict)
    clears: frozenset[Milestone] = frozenset()

    @property
    def touched(self) -> list[Milestone]:
        return list(self.sets) + sorted(self.clears - set(self.sets), key=lambda m: m.value)

    @property
    def is_empty(self) -> bool:
        return not self.sets and not self.clears


def resolve(family, from_stage, to_stage, acting_user, now: datetime) -> MilestoneDelta:
    """Compute the milestone delta for ``from_stage`` → ``to_stage``."""
    wf = workflow_for(family)
    target: Stage = parse_stage(family, to_stage)
    target_idx = wf.index_of(target)

    sets = {}
    target_milestone = wf.definition(target).milestone
    if target_milestone is not None:
        sets[target_milestone] = MilestoneSet(
            at=now,
            user_id=getattr(acting_user, "id", None),
            user_name=getattr(acting_user, "name", None),
        )

    clears = set()
    if from_stage is not None:
        from_idx = wf.index_of(parse_stage(family, from_stage))
        if target_idx < from_idx:
            for definition in wf.stages[target_idx + 1:from_idx + 1]:
                if definition.milestone is not None and definition.milestone not in sets:
                    clears.add(definition.milestone)

    return MilestoneDelta(sets=sets, clears=frozenset(clears))
