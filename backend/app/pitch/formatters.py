"""Asset formatters: turn a narrative into a sales-ready document.

Each formatter reads the narrative sections (``business_story``,
``pain_points``, ``value_props``, ``proof_points``, ``roi_story``,
``solution_fit``, ``cta_hooks``) and produces structured content plus an
HTML rendering. Formatters are deterministic and never call the model.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from html import escape
from typing import Any

FORMATTER_INFO: dict[str, dict[str, str]] = {
    "sales_pitch": {
        "name": "Sales Pitch",
        "description": "Verbal pitch script for sales conversations",
        "estimated_time": "30 seconds",
    },
    "one_pager": {
        "name": "One-Pager",
        "description": "Single-page sales document",
        "estimated_time": "45 seconds",
    },
    "email_sequence": {
        "name": "Email Sequence",
        "description": "5-email nurture sequence",
        "estimated_time": "60 seconds",
    },
    "linkedin": {
        "name": "LinkedIn Messages",
        "description": "3 LinkedIn outreach messages",
        "estimated_time": "30 seconds",
    },
    "executive_summary": {
        "name": "Executive Summary",
        "description": "Formal executive summary document",
        "estimated_time": "45 seconds",
    },
    "deck": {
        "name": "Presentation Deck",
        "description": "10-slide sales presentation",
        "estimated_time": "90 seconds",
    },
    "proposal": {
        "name": "Business Proposal",
        "description": "Comprehensive proposal document",
        "estimated_time": "120 seconds",
    },
}


@dataclass
class FormattedOutput:
    formatter_type: str
    content: dict[str, Any]
    html: str
    word_count: int


class UnknownFormatterError(ValueError):
    pass


# ---------------------------------------------------------------------------
# Narrative accessors
# ---------------------------------------------------------------------------


def _section(narrative: dict, key: str) -> dict:
    value = narrative.get(key)
    return value if isinstance(value, dict) else {}


def _items(narrative: dict, key: str) -> list[dict]:
    value = narrative.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _first(narrative: dict, key: str) -> dict:
    items = _items(narrative, key)
    return items[0] if items else {}


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_sales_pitch(narrative: dict, business_name: str) -> dict:
    story = _section(narrative, "business_story")
    roi = _section(narrative, "roi_story")
    cta = _first(narrative, "cta_hooks")
    return {
        "opener": {
            "greeting": f"Hi, is this the owner of {business_name}?",
            "hook": story.get("value_proposition")
            or "I noticed your business online and wanted to share something with you.",
        },
        "discovery_bridge": {
            "acknowledgment": story.get("current_state")
            or "I understand running a local business comes with challenges.",
            "pain_point": _first(narrative, "pain_points").get("description")
            or "Many businesses struggle with online visibility.",
        },
        "benefits": [
            {"title": vp.get("title", ""), "explanation": vp.get("benefit", "")}
            for vp in _items(narrative, "value_props")[:3]
        ],
        "proof": {
            "data_points": _strings(_section(narrative, "proof_points").get("differentiators")),
            "roi_highlight": roi.get("headline") or "We help businesses grow their revenue.",
        },
        "call_to_action": {
            "primary_ask": cta.get("action") or "Can we schedule a quick call to discuss?",
            "urgency": cta.get("headline") or "The sooner we start, the sooner you see results.",
            "close_question": "Does that sound like something worth exploring?",
        },
        "estimated_duration": "3-4 minutes",
    }


def format_one_pager(narrative: dict, business_name: str) -> dict:
    story = _section(narrative, "business_story")
    roi = _section(narrative, "roi_story")
    return {
        "headline": story.get("headline") or f"Growth plan for {business_name}",
        "subheadline": story.get("value_proposition", ""),
        "challenges": [p.get("title", "") for p in _items(narrative, "pain_points")[:3]],
        "solutions": [
            {"title": vp.get("title", ""), "benefit": vp.get("benefit", "")}
            for vp in _items(narrative, "value_props")[:4]
        ],
        "results": {
            "headline": roi.get("headline", ""),
            "metrics": _items(roi, "key_metrics")[:3],
        },
        "call_to_action": _first(narrative, "cta_hooks").get("action") or "Book a 15-minute call",
    }


_EMAIL_SCHEDULE = (
    (0, "Introduction"),
    (2, "Pain point focus"),
    (4, "Value demonstration"),
    (7, "Social proof"),
    (10, "Direct ask"),
)


def format_email_sequence(narrative: dict, business_name: str) -> dict:
    story = _section(narrative, "business_story")
    pain = _first(narrative, "pain_points")
    roi = _section(narrative, "roi_story")
    proof = _strings(_section(narrative, "proof_points").get("differentiators"))
    cta = _first(narrative, "cta_hooks")
    bodies = (
        (
            f"Quick thought about {business_name}",
            f"I came across {business_name} while researching local businesses. "
            + (story.get("value_proposition") or "I think there may be room to grow."),
        ),
        (
            f"{pain.get('title') or 'A common challenge'}",
            pain.get("description") or "Many local businesses struggle with online visibility.",
        ),
        (
            f"How {business_name} could grow",
            roi.get("headline") or "There's real potential for growth here.",
        ),
        (
            "Results other local businesses are seeing",
            f"Businesses like yours are seeing results: {proof[0] if proof else 'significant growth'}.",
        ),
        (
            "One last thought",
            (cta.get("headline") or "I believe there's a real opportunity here.")
            + " "
            + (cta.get("action") or "Let's schedule 15 minutes to talk."),
        ),
    )
    emails = [
        {"email_number": index, "send_day": day, "purpose": purpose, "subject": subject, "body": body}
        for index, ((day, purpose), (subject, body)) in enumerate(zip(_EMAIL_SCHEDULE, bodies), start=1)
    ]
    return {"sequence_name": f"{business_name} nurture sequence", "total_duration": "10 days", "emails": emails}


def format_linkedin(narrative: dict, business_name: str) -> dict:
    story = _section(narrative, "business_story")
    vp = _first(narrative, "value_props")
    cta = _first(narrative, "cta_hooks")
    return {
        "messages": [
            {
                "type": "connection_request",
                "body": f"Hi, I enjoyed learning about {business_name}. "
                "I work with local businesses on growth and would love to connect.",
            },
            {
                "type": "follow_up",
                "body": (vp.get("benefit") or story.get("value_proposition") or "I have a few ideas for you.")
                + " Happy to share how it could work for you.",
            },
            {
                "type": "meeting_request",
                "body": cta.get("action") or "Would you be open to a 15-minute call next week?",
            },
        ]
    }


def format_executive_summary(narrative: dict, business_name: str) -> dict:
    story = _section(narrative, "business_story")
    roi = _section(narrative, "roi_story")
    fit = _section(narrative, "solution_fit")
    return {
        "title": f"Executive Summary: {business_name}",
        "overview": story.get("value_proposition", ""),
        "situation": story.get("current_state", ""),
        "key_challenges": [p.get("title", "") for p in _items(narrative, "pain_points")],
        "recommendation": " ".join(
            f"{case.get('product', '')}: {case.get('outcome', '')}".strip(": ")
            for case in _items(fit, "use_cases")
        ),
        "recommended_solutions": _strings(fit.get("primary_products")),
        "expected_outcomes": {"headline": roi.get("headline", ""), "metrics": _items(roi, "key_metrics")},
        "next_step": _first(narrative, "cta_hooks").get("action") or "Schedule a discovery call",
    }


def format_deck(narrative: dict, business_name: str) -> dict:
    story = _section(narrative, "business_story")
    roi = _section(narrative, "roi_story")
    proof = _section(narrative, "proof_points")
    fit = _section(narrative, "solution_fit")
    pains = _items(narrative, "pain_points")
    props = _items(narrative, "value_props")
    slides = [
        ("title", f"Growth Opportunity: {business_name}", [story.get("value_proposition") or "Unlock your potential"]),
        ("content", "The Challenge", [p.get("title", "") for p in pains[:4]]),
        ("content", "The Opportunity", [story.get("desired_state") or "Transform challenges into growth"]),
        ("data", "Where You Are Today", [story.get("current_state", "")]),
        ("content", "What Customers Say", [t.get("theme", "") for t in _items(proof, "top_themes")[:3]]),
        ("content", "Our Approach", [vp.get("title", "") for vp in props[:4]]),
        ("content", "Recommended Solutions", _strings(fit.get("primary_products"))),
        ("data", "Projected Impact", [roi.get("headline", "")] + [
            f"{m.get('metric', '')}: {m.get('current', '')} -> {m.get('projected', '')}"
            for m in _items(roi, "key_metrics")[:3]
        ]),
        ("content", "Why Us", _strings(proof.get("differentiators"))[:4]),
        ("cta", "Next Steps", [c.get("action", "") for c in _items(narrative, "cta_hooks")[:3]]),
    ]
    return {
        "title": f"Growth Opportunity: {business_name}",
        "slide_count": len(slides),
        "slides": [
            {"slide_number": number, "slide_type": kind, "title": title, "bullets": [b for b in bullets if b]}
            for number, (kind, title, bullets) in enumerate(slides, start=1)
        ],
    }


def format_proposal(narrative: dict, business_name: str) -> dict:
    summary = format_executive_summary(narrative, business_name)
    roi = _section(narrative, "roi_story")
    return {
        "title": f"Business Proposal for {business_name}",
        "executive_summary": summary["overview"],
        "current_situation": {
            "summary": summary["situation"],
            "challenges": [
                {"title": p.get("title", ""), "impact": p.get("impact", "")}
                for p in _items(narrative, "pain_points")
            ],
        },
        "proposed_solution": {
            "rationale": summary["recommendation"],
            "components": [
                {"title": vp.get("title", ""), "benefit": vp.get("benefit", "")}
                for vp in _items(narrative, "value_props")
            ],
        },
        "timeline": [
            {"phase": "Discovery", "duration": "Week 1"},
            {"phase": "Setup", "duration": "Week 2"},
            {"phase": "Launch", "duration": "Weeks 3-4"},
            {"phase": "Optimization", "duration": "Ongoing"},
        ],
        "investment_and_return": {"headline": roi.get("headline", ""), "summary": roi.get("summary", "")},
        "next_steps": [c.get("action", "") for c in _items(narrative, "cta_hooks") if c.get("action")],
    }


FORMATTERS: dict[str, Callable[[dict, str], dict]] = {
    "sales_pitch": format_sales_pitch,
    "one_pager": format_one_pager,
    "email_sequence": format_email_sequence,
    "linkedin": format_linkedin,
    "executive_summary": format_executive_summary,
    "deck": format_deck,
    "proposal": format_proposal,
}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _humanize(key: str) -> str:
    return key.replace("_", " ").capitalize()


def _render(value: Any, depth: int = 2) -> str:
    if isinstance(value, dict):
        parts = []
        for key, item in value.items():
            heading = min(depth, 6)
            parts.append(f"<h{heading}>{escape(_humanize(str(key)))}</h{heading}>{_render(item, depth + 1)}")
        return "".join(parts)
    if isinstance(value, list):
        return "<ul>" + "".join(f"<li>{_render(item, depth + 1)}</li>" for item in value) + "</ul>"
    return f"<p>{escape(str(value))}</p>" if value not in (None, "") else ""


def render_html(title: str, content: dict) -> str:
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        f"<title>{escape(title)}</title></head>"
        f"<body><h1>{escape(title)}</h1>{_render(content)}</body></html>"
    )


def _word_count(html: str) -> int:
    return len(re.sub(r"<[^>]+>", " ", html).split())


def format_narrative(formatter_type: str, narrative: dict, business_name: str) -> FormattedOutput:
    """Run one formatter over ``narrative``.

    Raises:
        UnknownFormatterError: ``formatter_type`` is not registered.
    """
    formatter = FORMATTERS.get(formatter_type)
    if formatter is None:
        raise UnknownFormatterError(f"Unknown formatter: {formatter_type}")
    content = formatter(narrative, business_name)
    html = render_html(f"{FORMATTER_INFO[formatter_type]['name']}: {business_name}", content)
    return FormattedOutput(formatter_type=formatter_type, content=content, html=html, word_count=_word_count(html))
