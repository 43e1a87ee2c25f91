"""HTML pitch rendering for the three pitch levels.

* Level 1: outreach sequence (email + LinkedIn touches)
* Level 2: one-page pitch
* Level 3: multi-section presentation

Rendering is a pure function of the inputs. Every interpolated value is
HTML-escaped.
"""

import re
from dataclasses import dataclass, field
from html import escape

from app.config import settings
from app.pitch.roi import format_currency

PITCH_LEVELS = (1, 2, 3)
_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass
class PitchInputs:
    business_name: str
    industry: str
    contact_name: str = "Business Owner"
    address: str | None = None
    website_url: str | None = None
    sub_industry: str | None = None
    google_rating: float | None = None
    num_reviews: int | None = None
    stated_problem: str = "increasing customer engagement and visibility"
    monthly_visits: int = 200
    avg_transaction: float = 50.0
    repeat_rate: float = 0.4


@dataclass
class PitchOptions:
    hide_branding: bool = False
    primary_color: str = field(default_factory=lambda: settings.brand_primary_color)
    accent_color: str = field(default_factory=lambda: settings.brand_accent_color)
    company_name: str = field(default_factory=lambda: settings.brand_company_name)
    contact_email: str = field(default_factory=lambda: settings.brand_contact_email)
    logo_url: str | None = None
    booking_url: str | None = None


def review_sentiment(rating: float | None) -> dict[str, int]:
    """Approximate review sentiment split from the star rating."""
    rating = rating if rating is not None else 4.0
    if rating >= 4.5:
        return {"positive": 85, "neutral": 12, "negative": 3}
    if rating >= 4.0:
        return {"positive": 75, "neutral": 18, "negative": 7}
    if rating >= 3.5:
        return {"positive": 60, "neutral": 25, "negative": 15}
    return {"positive": 65, "neutral": 25, "negative": 10}


def _color(value: str, fallback: str) -> str:
    return value if _HEX_COLOR.match(value or "") else fallback


def _page(title: str, body: str, options: PitchOptions) -> str:
    primary = _color(options.primary_color, settings.brand_primary_color)
    accent = _color(options.accent_color, settings.brand_accent_color)
    logo = f'<img class="logo" src="{escape(options.logo_url)}" alt="logo">' if options.logo_url else ""
    footer = ""
    if not options.hide_branding:
        footer = (
            f'<footer>Prepared by {escape(options.company_name)} · '
            f'<a href="mailto:{escape(options.contact_email)}">{escape(options.contact_email)}</a></footer>'
        )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{escape(title)}</title>
<style>
:root {{ --primary-color: {primary}; --accent-color: {accent}; }}
body {{ font-family: system-ui, sans-serif; margin: 0; color: #1f2933; }}
header {{ background: var(--primary-color); color: #fff; padding: 32px; }}
section {{ padding: 24px 32px; border-bottom: 1px solid #e4e7eb; }}
.metric {{ display: inline-block; margin-right: 32px; }}
.metric strong {{ display: block; font-size: 1.6em; color: var(--accent-color); }}
.cta {{ background: var(--accent-color); color: #fff; padding: 12px 24px; text-decoration: none; }}
footer {{ padding: 16px 32px; font-size: 0.85em; color: #7b8794; }}
.logo {{ max-height: 48px; }}
</style>
</head>
<body>
<header>{logo}<h1>{escape(title)}</h1></header>
{body}
{footer}
</body>
</html>
"""


def _snapshot(inputs: PitchInputs) -> str:
    rating = f"{inputs.google_rating:.1f}★" if inputs.google_rating is not None else "n/a"
    reviews = f"{inputs.num_reviews:,}" if inputs.num_reviews is not None else "n/a"
    location = f"<p>{escape(inputs.address)}</p>" if inputs.address else ""
    return (
        "<section><h2>Business snapshot</h2>"
        f"{location}"
        f'<div class="metric"><strong>{rating}</strong>Google rating</div>'
        f'<div class="metric"><strong>{reviews}</strong>Reviews</div>'
        f'<div class="metric"><strong>{escape(inputs.sub_industry or inputs.industry)}</strong>Industry</div>'
        "</section>"
    )


def _roi_section(roi: dict) -> str:
    current = roi["current"]
    projected = roi["projected"]
    improvement = roi["improvement"]
    return (
        "<section><h2>Revenue opportunity</h2>"
        f'<div class="metric"><strong>{format_currency(current["monthly_revenue"])}</strong>Current monthly revenue</div>'
        f'<div class="metric"><strong>{format_currency(projected["monthly_revenue"])}</strong>Projected monthly revenue</div>'
        f'<div class="metric"><strong>+{format_currency(improvement["annual"])}</strong>'
        f'Annual upside ({improvement["percentage"]}%)</div>'
        "</section>"
    )


def _sentiment_section(sentiment: dict[str, int]) -> str:
    return (
        "<section><h2>What customers say</h2>"
        f'<div class="metric"><strong>{sentiment["positive"]}%</strong>Positive</div>'
        f'<div class="metric"><strong>{sentiment["neutral"]}%</strong>Neutral</div>'
        f'<div class="metric"><strong>{sentiment["negative"]}%</strong>Negative</div>'
        "</section>"
    )


def _cta(options: PitchOptions) -> str:
    href = options.booking_url or f"mailto:{options.contact_email}"
    return f'<section><a class="cta" href="{escape(href)}">Book a 15-minute call</a></section>'


def _level1(inputs: PitchInputs, roi: dict, options: PitchOptions) -> str:
    name = escape(inputs.business_name)
    contact = escape(inputs.contact_name)
    problem = escape(inputs.stated_problem)
    upside = format_currency(roi["improvement"]["annual"])
    touches = [
        ("Day 1 · Email", f"Hi {contact}, I came across {name} and noticed your customers love what you do. "
                          f"Many {escape(inputs.industry)} businesses we work with are focused on {problem}."),
        ("Day 3 · LinkedIn", f"Hi {contact}, I help businesses like {name} turn great reviews into repeat visits. "
                             "Open to connecting?"),
        ("Day 6 · Email", f"Quick follow-up: based on your numbers, {name} could add roughly {upside} a year. "
                          "Worth a short call?"),
        ("Day 10 · Email", f"Last note from me, {contact}. If {problem} is a priority this quarter, I'd love to help."),
    ]
    steps = "".join(f"<section><h3>{label}</h3><p>{text}</p></section>" for label, text in touches)
    return _page(f"Outreach sequence: {inputs.business_name}", steps + _cta(options), options)


def _level2(inputs: PitchInputs, roi: dict, options: PitchOptions) -> str:
    body = (
        _snapshot(inputs)
        + _sentiment_section(review_sentiment(inputs.google_rating))
        + _roi_section(roi)
        + f"<section><h2>The challenge</h2><p>{escape(inputs.stated_problem)}</p></section>"
        + _cta(options)
    )
    return _page(f"Growth plan for {inputs.business_name}", body, options)


def _level3(inputs: PitchInputs, roi: dict, options: PitchOptions) -> str:
    sentiment = review_sentiment(inputs.google_rating)
    slides = [
        f"<section><h2>{escape(inputs.business_name)}</h2>"
        f"<p>Prepared for {escape(inputs.contact_name)}</p></section>",
        _snapshot(inputs),
        _sentiment_section(sentiment),
        f"<section><h2>Where you are today</h2><p>{escape(inputs.stated_problem)}</p></section>",
        "<section><h2>The plan</h2><ul>"
        "<li>Increase visibility in local search</li>"
        "<li>Convert more first-time visitors</li>"
        "<li>Bring customers back more often</li>"
        "</ul></section>",
        _roi_section(roi),
        "<section><h2>Next steps</h2><ol>"
        "<li>15-minute discovery call</li><li>Tailored rollout plan</li><li>Launch within two weeks</li>"
        "</ol></section>",
        _cta(options),
    ]
    return _page(f"{inputs.business_name}: growth presentation", "".join(slides), options)


_RENDERERS = {1: _level1, 2: _level2, 3: _level3}


def build_pitch_html(inputs: PitchInputs, level: int, roi: dict, options: PitchOptions | None = None) -> str:
    """Render the pitch document for ``level`` (1, 2 or 3)."""
    if level not in _RENDERERS:
        raise ValueError(f"Unsupported pitch level: {level}")
    return _RENDERERS[level](inputs, roi, options or PitchOptions())
