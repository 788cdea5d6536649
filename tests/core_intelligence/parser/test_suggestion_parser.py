"""
Tests for core_intelligence.parser.suggestion_parser.

Covers strategy precedence, marker stripping, length and banned-word
filtering, and ParseFailure.
"""

import pytest

from core_intelligence.parser.suggestion_parser import SuggestionParser
from domain.policies import ParsePolicy, ParseStrategy
from shared_utils.error_handler import ParseFailure


@pytest.fixture()
def parser() -> SuggestionParser:
    return SuggestionParser()


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class TestNumbered:
    def test_line_numbered(self, parser) -> None:
        response = "1. Try tiered pricing\n2. Try tiered pricing\n3. Ask customers directly"
        assert parser.parse(response) == [
            "Try tiered pricing",
            "Try tiered pricing",
            "Ask customers directly",
        ]

    def test_preamble_and_closing_dropped(self, parser) -> None:
        response = (
            "Here are some options:\n"
            "1) Run a pricing survey\n"
            "2) Offer an annual discount\n"
            "\n"
            "Hope that moves things along."
        )
        assert parser.parse(response) == ["Run a pricing survey", "Offer an annual discount"]

    def test_wrapped_item_kept_whole(self, parser) -> None:
        response = (
            "1. Offer an annual plan with two free months\n"
            "   for teams that commit early\n"
            "2. Ask customers directly"
        )
        assert parser.parse(response) == [
            "Offer an annual plan with two free months for teams that commit early",
            "Ask customers directly",
        ]

    def test_numbers_inside_items_do_not_switch_to_inline(self, parser) -> None:
        response = "1. Cut the entry price by 10. Then upsell support\n2. Bundle onboarding help"
        assert parser.parse(response) == [
            "Cut the entry price by 10. Then upsell support",
            "Bundle onboarding help",
        ]

    def test_inline_numbered(self, parser) -> None:
        response = "1. Run a pricing survey 2. Offer an annual discount 3. Bundle onboarding help"
        assert parser.parse(response) == [
            "Run a pricing survey",
            "Offer an annual discount",
            "Bundle onboarding help",
        ]

    def test_single_inline_marker_is_not_a_list(self, parser) -> None:
        # "3." mid-sentence alone does not make a numbered list
        assert parser.split("We could ship 3. versions in parallel next quarter") == [
            "We could ship 3. versions in parallel next quarter"
        ]


class TestLinesAndDelimited:
    def test_lines(self, parser) -> None:
        response = "- Run a pricing survey\n\n* Offer an annual discount\n"
        assert parser.parse(response) == ["Run a pricing survey", "Offer an annual discount"]

    def test_pipe_delimited(self, parser) -> None:
        assert parser.parse("Run a pricing survey | Offer an annual discount") == [
            "Run a pricing survey",
            "Offer an annual discount",
        ]

    def test_semicolon_delimited(self, parser) -> None:
        assert parser.parse("Run a pricing survey; Offer an annual discount") == [
            "Run a pricing survey",
            "Offer an annual discount",
        ]

    def test_single_candidate_fallback(self, parser) -> None:
        assert parser.parse("  Offer an annual discount  ") == ["Offer an annual discount"]

    def test_custom_precedence(self) -> None:
        parser = SuggestionParser(ParsePolicy(precedence=(ParseStrategy.DELIMITED, ParseStrategy.LINES)))
        response = "Run a pricing survey; Offer a discount\nBundle onboarding help"
        assert parser.parse(response) == [
            "Run a pricing survey",
            "Offer a discount\nBundle onboarding help",
        ]


# ---------------------------------------------------------------------------
# Cleaning and filtering
# ---------------------------------------------------------------------------


class TestClean:
    @pytest.mark.parametrize(
        "segment, expected",
        [
            ("  - Run a survey ", "Run a survey"),
            ("• Run a survey", "Run a survey"),
            ("(2) Run a survey", "Run a survey"),
            ("3) Run a survey", "Run a survey"),
            ("- 1. Run a survey", "Run a survey"),
        ],
    )
    def test_markers_stripped(self, parser, segment: str, expected: str) -> None:
        assert parser.clean(segment) == expected

    @pytest.mark.parametrize("segment", ["1.5x faster checkout", "**Bold** pricing idea"])
    def test_markers_need_whitespace(self, parser, segment: str) -> None:
        assert parser.clean(segment) == segment


class TestFiltering:
    def test_short_candidates_dropped(self, parser) -> None:
        assert parser.parse("1. Too short\n2. Tiny\n3. Ask customers directly") == [
            "Ask customers directly"
        ]

    def test_min_length_boundary(self) -> None:
        parser = SuggestionParser(ParsePolicy(min_suggestion_length=10))
        assert parser.is_usable("x" * 10) is True
        assert parser.is_usable("x" * 9) is False

    def test_banned_word_dropped(self, parser) -> None:
        response = "1. Let's Brainstorm more about this\n2. Ask customers directly"
        assert parser.parse(response) == ["Ask customers directly"]

    def test_nothing_usable_raises(self, parser) -> None:
        with pytest.raises(ParseFailure) as exc_info:
            parser.parse("1. Short\n2. Tiny")
        assert exc_info.value.context == {"segment_count": 2}

    @pytest.mark.parametrize("response", [None, "", "   ", 42])
    def test_empty_or_non_text_raises(self, parser, response) -> None:
        with pytest.raises(ParseFailure):
            parser.parse(response)
