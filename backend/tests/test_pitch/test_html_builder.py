"""Tests for HTML pitch rendering."""

import pytest

from app.pitch.html_builder import PITCH_LEVELS, PitchInputs, PitchOptions, build_pitch_html, review_sentiment
from app.pitch.roi import calculate_roi

ROI = calculate_roi()


def _inputs(**overrides) -> PitchInputs:
    values = {
        "business_name": "Joe's Lawn Care",
        "industry": "Lawn Care",
        "contact_name": "Joe Smith",
        "address": "Austin, Texas",
        "google_rating": 4.5,
        "num_reviews": 1270,
    }
    values.update(overrides)
    return PitchInputs(**values)


class TestReviewSentiment:
    @pytest.mark.parametrize(
        "rating, positive",
        [(4.9, 85), (4.5, 85), (4.2, 75), (3.7, 60), (2.0, 65), (None, 75)],
    )
    def test_buckets(self, rating, positive):
        split = review_sentiment(rating)
        assert split["positive"] == positive
        assert sum(split.values()) == 100


class TestBuildPitchHtml:
    @pytest.mark.parametrize("level", PITCH_LEVELS)
    def test_every_level_renders_a_document(self, level):
        html = build_pitch_html(_inputs(), level, ROI)
        assert html.startswith("<!DOCTYPE html>")
        assert "Joe&#x27;s Lawn Care" in html
        assert "Book a 15-minute call" in html

    def test_level1_is_an_outreach_sequence(self):
        html = build_pitch_html(_inputs(), 1, ROI)
        assert "Day 1 · Email" in html
        assert "Day 3 · LinkedIn" in html
        assert "$75,000" in html

    def test_level2_shows_snapshot_and_roi(self):
        html = build_pitch_html(_inputs(), 2, ROI)
        assert "4.5★" in html
        assert "1,270" in html
        assert "Annual upside (25.0%)" in html

    def test_level3_has_next_steps(self):
        html = build_pitch_html(_inputs(), 3, ROI)
        assert "Prepared for Joe Smith" in html
        assert "Next steps" in html

    def test_unsupported_level(self):
        with pytest.raises(ValueError, match="Unsupported pitch level"):
            build_pitch_html(_inputs(), 4, ROI)

    def test_values_are_escaped(self):
        html = build_pitch_html(_inputs(business_name="<script>alert(1)</script>"), 2, ROI)
        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;" in html

    def test_white_label_hides_footer_and_applies_colors(self):
        options = PitchOptions(hide_branding=True, primary_color="#112233", accent_color="nope")
        html = build_pitch_html(_inputs(), 2, ROI, options)
        assert "Prepared by" not in html
        assert "--primary-color: #112233" in html
        assert "--accent-color: #D4A847" in html

    def test_branding_footer_by_default(self):
        assert "Prepared by PitchForge" in build_pitch_html(_inputs(), 2, ROI)

    def test_booking_url_used_for_cta(self):
        options = PitchOptions(booking_url="https://cal.example/joe")
        assert 'href="https://cal.example/joe"' in build_pitch_html(_inputs(), 3, ROI, options)
