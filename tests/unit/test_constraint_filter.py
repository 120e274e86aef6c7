"""Unit tests for time-budget and experience-level filtering."""

from __future__ import annotations

import pytest

from nextstep.domain.models import ActionType, ExperienceLevel, ResourceType
from nextstep.domain.services import ConstraintFilter, TimeBucket
from nextstep.domain.services.constraints import time_bucket
from tests.utils import make_candidate as candidate
from tests.utils import make_context


@pytest.fixture
def constraint_filter() -> ConstraintFilter:
    return ConstraintFilter()


class TestTimeBuckets:
    @pytest.mark.parametrize(
        ("minutes", "bucket"),
        [(30, TimeBucket.QUICK), (60, TimeBucket.QUICK), (61, TimeBucket.MEDIUM),
         (180, TimeBucket.MEDIUM), (181, TimeBucket.LONG)],
    )
    def test_bucket_boundaries(self, minutes: int, bucket: TimeBucket) -> None:
        assert time_bucket(minutes) is bucket

    def test_allowed_buckets_by_budget(self, constraint_filter: ConstraintFilter) -> None:
        assert constraint_filter.allowed_buckets(1) == (TimeBucket.QUICK,)
        assert constraint_filter.allowed_buckets(3) == (TimeBucket.QUICK, TimeBucket.MEDIUM)
        assert constraint_filter.allowed_buckets(5) == tuple(TimeBucket)


class TestTimeBudget:
    def test_one_hour_week_keeps_only_quick_actions(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        candidates = [candidate("Git", 30), candidate("Git", 90), candidate("Git", 240)]

        kept = constraint_filter.apply_time_budget(candidates, make_context(hours=1))

        assert [c.estimated_minutes for c in kept] == [30]
        assert not kept[0].exceeds_time_budget

    def test_top_gap_is_never_left_without_an_action(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        candidates = [
            candidate("Kubernetes", 240, priority=1),
            candidate("Kubernetes", 150, priority=1),
            candidate("Git", 30, priority=2),
        ]

        kept = constraint_filter.apply_time_budget(candidates, make_context(hours=1))

        assert [(c.gap.skill_name, c.estimated_minutes) for c in kept] == [
            ("Kubernetes", 150),
            ("Git", 30),
        ]
        assert kept[0].exceeds_time_budget
        assert not kept[1].exceeds_time_budget

    def test_lower_gaps_are_dropped_when_out_of_bucket(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        candidates = [candidate("Git", 30, priority=1), candidate("Docker", 240, priority=2)]

        kept = constraint_filter.apply_time_budget(candidates, make_context(hours=3))

        assert [c.gap.skill_name for c in kept] == ["Git"]

    def test_in_bucket_action_beyond_budget_slack_is_flagged(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        # 2h/week allows medium actions; 180 minutes exceeds 120 * 1.2
        kept = constraint_filter.apply_time_budget(
            [candidate("Git", 180)], make_context(hours=2)
        )

        assert len(kept) == 1
        assert kept[0].exceeds_time_budget

    def test_within_slack_is_not_flagged(self, constraint_filter: ConstraintFilter) -> None:
        kept = constraint_filter.apply_time_budget(
            [candidate("Git", 140)], make_context(hours=2)
        )

        assert not kept[0].exceeds_time_budget

    def test_order_is_preserved(self, constraint_filter: ConstraintFilter) -> None:
        candidates = [candidate("B", 45, priority=1), candidate("A", 20, priority=2)]

        kept = constraint_filter.apply_time_budget(candidates, make_context(hours=10))

        assert kept == candidates

    def test_empty_input(self, constraint_filter: ConstraintFilter) -> None:
        assert constraint_filter.apply_time_budget([], make_context()) == []


class TestExperienceFit:
    def test_beginner_keeps_guided_resources(self, constraint_filter: ConstraintFilter) -> None:
        candidates = [
            candidate("Git", 45, resource=ResourceType.TUTORIAL),
            candidate("Git", 60, resource=ResourceType.DOCUMENTATION),
            candidate("Git", 150, resource=ResourceType.COURSE),
        ]

        kept = constraint_filter.apply_experience(candidates, ExperienceLevel.BEGINNER)

        assert [c.resource_type for c in kept] == [ResourceType.TUTORIAL, ResourceType.COURSE]

    def test_advanced_prefers_documentation(self, constraint_filter: ConstraintFilter) -> None:
        candidates = [
            candidate("Git", 45, resource=ResourceType.TUTORIAL),
            candidate("Git", 60, resource=ResourceType.DOCUMENTATION),
        ]

        kept = constraint_filter.apply_experience(candidates, ExperienceLevel.ADVANCED)

        assert [c.resource_type for c in kept] == [ResourceType.DOCUMENTATION]

    def test_gap_without_preferred_resources_keeps_everything(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        candidates = [
            candidate("Git", 60, resource=ResourceType.DOCUMENTATION),
            candidate("Docker", 45, resource=ResourceType.TUTORIAL, priority=2),
        ]

        kept = constraint_filter.apply_experience(candidates, ExperienceLevel.BEGINNER)

        assert kept == candidates


class TestBucketMix:
    def test_generous_budget_swaps_in_missing_buckets(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        git_quick = candidate("Git", 45, priority=1)
        docker_quick = candidate("Docker", 30, priority=2)
        sql_quick = candidate("SQL", 20, priority=3)
        docker_long = candidate("Docker", 240, priority=2, resource=ResourceType.PROJECT)
        pool = [git_quick, docker_quick, docker_long, sql_quick]

        mixed = constraint_filter.balance_mix(
            [git_quick, docker_quick, sql_quick], pool, make_context(hours=8)
        )

        assert docker_long in mixed
        assert {c.gap.skill_name for c in mixed} == {"Git", "Docker", "SQL"}

    def test_demoted_action_is_not_swapped_back_in(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        git_quick = candidate("Git", 45, priority=1)
        docker_quick = candidate("Docker", 30, priority=2)
        sql_quick = candidate("SQL", 20, priority=3)
        git_project = candidate(
            "Git",
            240,
            priority=1,
            resource=ResourceType.PROJECT,
            action_type=ActionType.BUILD,
        )
        git_project.demoted = True
        chosen = [git_quick, docker_quick, sql_quick]

        mixed = constraint_filter.balance_mix(
            chosen, [git_quick, docker_quick, sql_quick, git_project], make_context(hours=8)
        )

        assert mixed == chosen

    def test_small_budget_leaves_selection_alone(
        self, constraint_filter: ConstraintFilter
    ) -> None:
        chosen = [candidate("Git", 45), candidate("Docker", 30, priority=2)]

        assert constraint_filter.balance_mix(chosen, chosen, make_context(hours=3)) == chosen
