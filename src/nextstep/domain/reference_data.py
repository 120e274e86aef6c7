"""Static reference data used to synthesise and explain candidate actions."""

from __future__ import annotations

from dataclasses import dataclass

from nextstep.domain.models import ActionType, ExperienceLevel, ResourceType


@dataclass(frozen=True, slots=True)
class ActionTemplate:
    action_type: ActionType
    resource_type: ResourceType
    base_minutes: int
    title: str
    description: str


ACTION_TEMPLATES: tuple[ActionTemplate, ...] = (
    ActionTemplate(
        action_type=ActionType.LEARN,
        resource_type=ResourceType.TUTORIAL,
        base_minutes=45,
        title="Follow a hands-on {skill} tutorial",
        description="Work through a guided, step-by-step tutorial covering core {skill} concepts.",
    ),
    ActionTemplate(
        action_type=ActionType.LEARN,
        resource_type=ResourceType.COURSE,
        base_minutes=150,
        title="Complete a structured {skill} course module",
        description="Take one module of a structured {category} course focused on {skill}.",
    ),
    ActionTemplate(
        action_type=ActionType.READ,
        resource_type=ResourceType.ARTICLE,
        base_minutes=30,
        title="Read an in-depth article on {skill}",
        description="Read a practitioner write-up on how {skill} is used in real projects.",
    ),
    ActionTemplate(
        action_type=ActionType.READ,
        resource_type=ResourceType.DOCUMENTATION,
        base_minutes=60,
        title="Study the official {skill} documentation",
        description="Go through the reference documentation for {skill} and note open questions.",
    ),
    ActionTemplate(
        action_type=ActionType.PRACTICE,
        resource_type=ResourceType.CHALLENGE,
        base_minutes=60,
        title="Solve a {skill} practice challenge",
        description="Pick a {skill} exercise slightly above your level and solve it unaided.",
    ),
    ActionTemplate(
        action_type=ActionType.BUILD,
        resource_type=ResourceType.PROJECT,
        base_minutes=240,
        title="Build a small project applying {skill}",
        description=(
            "Build and publish a small {category} project that exercises {skill} end to end."
        ),
    ),
)

# Multiplier applied to template durations per experience level
EXPERIENCE_TIME_FACTORS: dict[ExperienceLevel, float] = {
    ExperienceLevel.BEGINNER: 1.25,
    ExperienceLevel.INTERMEDIATE: 1.0,
    ExperienceLevel.ADVANCED: 0.8,
}

# Resource types favoured by each experience level
EXPERIENCE_RESOURCE_PREFERENCES: dict[ExperienceLevel, frozenset[ResourceType]] = {
    ExperienceLevel.BEGINNER: frozenset({ResourceType.TUTORIAL, ResourceType.COURSE}),
    ExperienceLevel.INTERMEDIATE: frozenset(
        {
            ResourceType.TUTORIAL,
            ResourceType.ARTICLE,
            ResourceType.CHALLENGE,
            ResourceType.PROJECT,
        }
    ),
    ExperienceLevel.ADVANCED: frozenset(
        {
            ResourceType.DOCUMENTATION,
            ResourceType.ARTICLE,
            ResourceType.CHALLENGE,
            ResourceType.PROJECT,
        }
    ),
}

# Assumed proficiency when the oracle does not report a current level
BASELINE_LEVELS: dict[ExperienceLevel, int] = {
    ExperienceLevel.BEGINNER: 1,
    ExperienceLevel.INTERMEDIATE: 4,
    ExperienceLevel.ADVANCED: 6,
}

# Minutes needed to advance one proficiency level, per skill category
CATEGORY_MINUTES_PER_LEVEL: dict[str, int] = {
    "programming-language": 180,
    "framework": 150,
    "tooling": 90,
    "devops": 180,
    "data": 180,
    "fundamentals": 240,
    "soft-skill": 60,
}

FALLBACK_EXPLANATIONS: dict[ExperienceLevel, dict[str, str]] = {
    ExperienceLevel.BEGINNER: {
        "why": "{skill} is one of the skills your goal '{goal}' depends on, and you are "
        "still building the basics.",
        "how_it_helps": "This {resource} walks you through {skill} step by step so you "
        "can close part of the gap without getting stuck.",
        "next_steps": "Set aside about {minutes} minutes, follow along, and write down "
        "anything that was unclear.",
    },
    ExperienceLevel.INTERMEDIATE: {
        "why": "{skill} is a gap between where you are and your goal '{goal}'.",
        "how_it_helps": "This {resource} deepens your working knowledge of {skill} with "
        "practical material.",
        "next_steps": "Block about {minutes} minutes, then apply one idea to your own code.",
    },
    ExperienceLevel.ADVANCED: {
        "why": "{skill} remains a gap on the path to '{goal}'.",
        "how_it_helps": "This {resource} targets the details of {skill} that matter at "
        "an advanced level.",
        "next_steps": "Spend about {minutes} minutes and capture the trade-offs you find.",
    },
}


def minutes_per_level(category: str, default: int) -> int:
    return CATEGORY_MINUTES_PER_LEVEL.get(category.strip().lower(), default)
