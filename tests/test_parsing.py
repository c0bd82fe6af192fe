"""Tests for tag extraction and section decoders."""

import pytest

from truthstack.models.schemas import BiasProfile, Source, Verdict, VerdictStatus
from truthstack.parsing import (
    decode_assumptions,
    decode_bias,
    decode_category,
    decode_key_reasons,
    decode_legacy_verdict,
    decode_points,
    decode_questions,
    decode_sources,
    decode_text,
    decode_verdict,
    extract_all,
    extract_section,
    strip_code_fences,
)


RAW_RESPONSE = """<investigation>
### The Deep Dive
- Fluid needs are partly met by food.
</investigation>
<verdict>
STATUS: MISLEADING
CONFIDENCE: 0.8
SUMMARY: Not evidence-based.
</verdict>
<category>Health</category>"""


class TestTagExtractor:
    """Test tag extraction over raw generated text."""

    def test_extracts_section(self):
        """Test that the inner text of a tag is returned."""
        section = extract_section(RAW_RESPONSE, "category")
        assert section == "Health"

    def test_missing_tag_is_none(self):
        """Test that a missing tag yields None, not an error."""
        assert extract_section(RAW_RESPONSE, "sources") is None
        assert extract_section("", "sources") is None
        assert extract_section(None, "sources") is None

    def test_case_insensitive_and_multiline(self):
        """Test case-insensitive matching across newlines."""
        text = "<VERDICT>\nSTATUS: TRUE\n</Verdict>"
        assert extract_section(text, "verdict") == "\nSTATUS: TRUE\n"

    def test_code_fence_rewrap_is_idempotent(self):
        """Test that a fenced payload yields the same sections as the bare one."""
        wrapped = f"```xml\n{RAW_RESPONSE}\n```"

        for tag in ("investigation", "verdict", "category"):
            assert extract_section(wrapped, tag) == extract_section(RAW_RESPONSE, tag)

    def test_tags_in_any_order(self):
        """Test that section order does not matter."""
        text = "<category>Science</category><investigation>Body</investigation>"
        assert extract_section(text, "investigation") == "Body"
        assert extract_section(text, "category") == "Science"

    def test_nested_unrelated_tags_are_content(self):
        """Test that tags inside a section are kept as content."""
        text = "<investigation>See <b>this</b> and <q>that</q></investigation>"
        assert extract_section(text, "investigation") == "See <b>this</b> and <q>that</q>"

    def test_first_pair_wins(self):
        """Test that the first opening tag pairs with the first closing tag."""
        text = "<verdict>first</verdict><verdict>second</verdict>"
        assert extract_section(text, "verdict") == "first"

    def test_similar_tag_names_do_not_match(self):
        """Test that <key_reasons> is not mistaken for <reasoning>."""
        text = "<key_reasons>- a</key_reasons><reasoning>Why</reasoning>"
        assert extract_section(text, "reasoning") == "Why"
        assert extract_all("<questions><q>A?</q></questions>", "q") == ["A?"]

    def test_strip_code_fences(self):
        """Test fence markers with and without a language are removed."""
        assert strip_code_fences("```json\n[]\n```") == "\n[]\n"


class TestSectionDecoders:
    """Test per-section decoders."""

    def test_questions_in_order(self):
        """Test that questions decode to an ordered list."""
        text = "<questions><q>A?</q><q>B?</q></questions>"
        assert decode_questions(extract_section(text, "questions")) == ["A?", "B?"]

    def test_questions_absent_or_empty(self):
        """Test questions default to an empty list."""
        assert decode_questions(None) == []
        assert decode_questions("no entries here") == []
        assert decode_questions("<q>  </q><q> C? </q>") == ["C?"]

    def test_sources_with_empty_url(self):
        """Test sources in order, including an empty url."""
        text = '<sources><s url="https://x.test">X</s><s url="">Y Org</s></sources>'

        sources = decode_sources(extract_section(text, "sources"))

        assert sources == [
            Source(title="X", uri="https://x.test"),
            Source(title="Y Org", uri=""),
        ]

    def test_sources_skip_unparseable_entries(self):
        """Test that entries without a parseable url attribute are skipped."""
        section = (
            '<s href="https://a.test">No url</s>'
            '<s url=https://b.test>Unquoted</s>'
            "<s url='https://c.test'>Single quoted</s>"
            '<s url="https://d.test"></s>'
        )

        sources = decode_sources(section)

        assert sources == [Source(title="Single quoted", uri="https://c.test")]

    def test_sources_keep_duplicates(self):
        """Test that sources are not deduplicated."""
        section = '<s url="https://x.test">X</s><s url="https://x.test">X</s>'
        assert len(decode_sources(section)) == 2

    def test_verdict_labels(self):
        """Test the three labelled verdict lines."""
        verdict = decode_verdict("STATUS: TRUE\nCONFIDENCE: 0.9\nSUMMARY: Looks solid.")

        assert verdict.status == VerdictStatus.TRUE
        assert verdict.confidence == 0.9
        assert verdict.summary == "Looks solid."

    def test_verdict_defaults(self):
        """Test defaults for an absent or unlabelled verdict."""
        assert decode_verdict(None) == Verdict()

        verdict = decode_verdict("The model forgot the labels.")
        assert verdict.status == VerdictStatus.UNVERIFIED
        assert verdict.confidence == 0.0
        assert verdict.summary == ""

    @pytest.mark.parametrize("raw,expected", [
        ("high", 0.0),
        ("85%", 0.85),
        ("7", 1.0),
        ("-0.4", 0.0),
        ("0.65.", 0.65),
    ])
    def test_verdict_confidence_parsing(self, raw, expected):
        """Test non-numeric, percent and out-of-range confidence values."""
        verdict = decode_verdict(f"STATUS: FALSE\nCONFIDENCE: {raw}")
        assert verdict.confidence == pytest.approx(expected)

    def test_verdict_tolerates_bold_labels_and_unknown_status(self):
        """Test markdown bold around labels and unknown statuses."""
        verdict = decode_verdict("**STATUS:** false\n**CONFIDENCE:** 0.7")
        assert verdict.status == VerdictStatus.FALSE
        assert verdict.confidence == 0.7

        assert decode_verdict("STATUS: MAYBE").status == VerdictStatus.UNVERIFIED

    def test_legacy_verdict(self):
        """Test the deprecated one-word verdict format."""
        verdict = decode_legacy_verdict("**FALSE**. The claim is not supported.")

        assert verdict.status == VerdictStatus.FALSE
        assert verdict.summary == "The claim is not supported."
        assert verdict.confidence == 0.0

    def test_bias_valid(self):
        """Test a valid bias object with prose around it."""
        section = (
            'Scores below:\n{"politicalScore": 10, "scientificDeviation": 72.6, '
            '"emotionalCharge": 150, "commercialInterest": 0, "framingNotes": "Fear framing"}'
        )

        bias = decode_bias(section)

        assert isinstance(bias, BiasProfile)
        assert bias.political_score == 10
        assert bias.scientific_deviation == 73
        assert bias.emotional_charge == 100
        assert bias.framing_notes == "Fear framing"

    @pytest.mark.parametrize("section", [
        '{"politicalScore": 5, "scientificDeviation": 1, "emotionalCharge": 2, "commercialInterest": 3,}',
        "not json at all",
        '{"politicalScore": 5}',
        '{"politicalScore": "high", "scientificDeviation": 1, "emotionalCharge": 2, "commercialInterest": 3}',
        "[1, 2, 3]",
        '{"politicalScore": null, "scientificDeviation": 1, "emotionalCharge": 2, "commercialInterest": 3}',
        '{"politicalScore": [1], "scientificDeviation": 1, "emotionalCharge": 2, "commercialInterest": 3}',
        '{"politicalScore": {"value": 1}, "scientificDeviation": 1, "emotionalCharge": 2, "commercialInterest": 3}',
        '{"politicalScore": 1' + "0" * 400 + ', "scientificDeviation": 1, "emotionalCharge": 2, "commercialInterest": 3}',
        None,
    ])
    def test_bias_malformed_is_absent(self, section):
        """Test that malformed bias text yields None instead of raising."""
        assert decode_bias(section) is None

    def test_key_reasons_strip_bullets(self):
        """Test bullet stripping and blank-line removal."""
        section = "- First\n\n* Second\n• Third\n2) Fourth\n   \n**Bold** stays"

        assert decode_key_reasons(section) == [
            "First", "Second", "Third", "Fourth", "**Bold** stays"
        ]
        assert decode_key_reasons(None) == []

    def test_assumptions(self):
        """Test assumptions use the same line decoding."""
        assert decode_assumptions("1. One\n2. Two") == ["One", "Two"]

    def test_points(self):
        """Test legacy <point> reasoning entries."""
        assert decode_points("<point>A</point>\n<point> B </point>") == ["A", "B"]

    def test_category(self):
        """Test category decoding and its default."""
        assert decode_category("\n  Health \n") == "Health"
        assert decode_category("") == "Other"
        assert decode_category(None) == "Other"

    def test_text(self):
        """Test blank sections decode to None."""
        assert decode_text("  body  ") == "body"
        assert decode_text("   ") is None
        assert decode_text(None) is None
