"""PowerPoint export of a pitch (python-pptx)."""

import io

from pptx import Presentation
from pptx.util import Inches, Pt

from app.pitch.html_builder import review_sentiment
from app.pitch.roi import format_currency

_TITLE_LAYOUT = 0
_TITLE_AND_CONTENT_LAYOUT = 1


def _bullet_slide(prs: Presentation, title: str, bullets: list[str]) -> None:
    slide = prs.slides.add_slide(prs.slide_layouts[_TITLE_AND_CONTENT_LAYOUT])
    slide.shapes.title.text = title
    body = slide.placeholders[1].text_frame
    body.text = bullets[0] if bullets else ""
    for bullet in bullets[1:]:
        body.add_paragraph().text = bullet
    for paragraph in body.paragraphs:
        paragraph.font.size = Pt(20)


def deck_slides(pitch) -> list[tuple[str, list[str]]]:
    """Slide titles and bullets for a pitch, in deck order."""
    roi = pitch.roi_data or {}
    current = roi.get("current", {})
    projected = roi.get("projected", {})
    improvement = roi.get("improvement", {})
    sentiment = review_sentiment(pitch.google_rating)

    snapshot = [f"Industry: {pitch.sub_industry or pitch.industry}"]
    if pitch.google_rating is not None:
        snapshot.append(f"Google rating: {pitch.google_rating:.1f} stars")
    if pitch.num_reviews is not None:
        snapshot.append(f"Reviews: {pitch.num_reviews:,}")
    snapshot.append(f"Positive sentiment: {sentiment['positive']}%")

    slides = [
        ("Business snapshot", snapshot),
        (
            "The opportunity",
            [
                pitch.custom_message or "Increase customer engagement and visibility",
                "Turn great reviews into repeat visits",
                "Win more first-time customers from local search",
            ],
        ),
    ]
    if current and projected:
        slides.append(
            (
                "Projected impact",
                [
                    f"Current monthly revenue: {format_currency(current.get('monthly_revenue', 0))}",
                    f"Projected monthly revenue: {format_currency(projected.get('monthly_revenue', 0))}",
                    f"Annual upside: {format_currency(improvement.get('annual', 0))} "
                    f"({improvement.get('percentage', 0)}%)",
                ],
            )
        )
    slides.append(
        (
            "Next steps",
            ["15-minute discovery call", "Tailored rollout plan", "Launch within two weeks"],
        )
    )
    return slides


def build_pitch_deck(pitch) -> bytes:
    """Render ``pitch`` as a 16:9 .pptx file and return its bytes."""
    prs = Presentation()
    prs.slide_width = Inches(10)
    prs.slide_height = Inches(5.625)

    title_slide = prs.slides.add_slide(prs.slide_layouts[_TITLE_LAYOUT])
    title_slide.shapes.title.text = pitch.business_name
    title_slide.placeholders[1].text = f"Prepared for {pitch.contact_name}"

    for title, bullets in deck_slides(pitch):
        _bullet_slide(prs, title, bullets)

    buffer = io.BytesIO()
    prs.save(buffer)
    return buffer.getvalue()
