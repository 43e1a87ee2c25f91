"""Structural validation of generated narratives.

The score starts at 100 and loses points per issue. A narrative is usable
when the score is at least 70 and nothing critical is missing.
"""

from typing import Any

REQUIRED_FIELDS = (
    "business_story",
    "pain_points",
    "value_props",
    "proof_points",
    "roi_story",
    "solution_fit",
    "cta_hooks",
)
LIST_FIELDS = ("pain_points", "value_props", "cta_hooks")

PASSING_SCORE = 70
MISSING_FIELD_PENALTY = 15
MISSING_STORY_PART_PENALTY = 5
EMPTY_LIST_PENALTY = 10


def _issue(severity: str, field: str, message: str, suggestion: str) -> dict[str, str]:
    return {
        "severity": severity,
        "category": "completeness",
        "field": field,
        "message": message,
        "suggestion": suggestion,
    }


def quick_validate(narrative: dict[str, Any]) -> dict[str, Any]:
    """Check that every section is present and the key lists are non-empty."""
    issues: list[dict[str, str]] = []
    score = 100

    for field in REQUIRED_FIELDS:
        if not narrative.get(field):
            issues.append(
                _issue("critical", field, f"Missing required field: {field}", f"Add the {field} section")
            )
            score -= MISSING_FIELD_PENALTY

    story = narrative.get("business_story")
    if isinstance(story, dict) and story:
        if not story.get("headline"):
            issues.append(
                _issue("major", "business_story.headline", "Missing headline in business_story", "Add a compelling headline")
            )
            score -= MISSING_STORY_PART_PENALTY
        if not story.get("value_proposition"):
            issues.append(
                _issue(
                    "major",
                    "business_story.value_proposition",
                    "Missing value proposition",
                    "Add a clear value proposition",
                )
            )
            score -= MISSING_STORY_PART_PENALTY

    for field in LIST_FIELDS:
        value = narrative.get(field)
        if not isinstance(value, list) or not value:
            issues.append(
                _issue("major", field, f"{field} must have at least 1 item(s)", f"Add more items to {field}")
            )
            score -= EMPTY_LIST_PENALTY

    score = max(0, score)
    passing = score >= PASSING_SCORE
    return {
        "is_valid": passing and not any(issue["severity"] == "critical" for issue in issues),
        "score": score,
        "breakdown": {
            "factual_consistency": 25 if passing else 15,
            "tone_appropriateness": 18 if passing else 12,
            "claim_validity": 18 if passing else 12,
            "completeness": 14 if passing else 8,
            "coherence": 14 if passing else 10,
        },
        "issues": issues,
        "summary": (
            "Basic structure validation passed."
            if not issues
            else f"Found {len(issues)} issue(s) in basic validation."
        ),
    }
