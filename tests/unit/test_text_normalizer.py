"""Unit tests for markup tokenization and text normalization."""

import pytest

from odp_import.parsers.exceptions import ErrorHandler
from odp_import.parsers.markup import find_matching_end, tokenize
from odp_import.parsers.text_normalizer import TextNormalizer


def _nested_list(depth: int, tag: str = "ul") -> str:
    markup = "".join(f"<{tag}><li>item{level}" for level in range(1, depth + 1))
    markup += "".join(f"</li></{tag}>" for _ in range(depth))
    return markup


class TestTokenizer:
    """Tests for the markup tokenizer."""

    def test_tags_and_text_in_order(self):
        """Test tokens come out in document order with attributes."""
        tokens = tokenize('<p class="x">Hi <a href="#t1">there</a></p>')

        assert [t.kind for t in tokens] == ["start", "text", "start", "text", "end", "end"]
        assert tokens[0].attrs == {"class": "x"}
        assert tokens[2].attrs["href"] == "#t1"

    def test_less_than_in_text_is_not_a_tag(self):
        """Test a bare '<' followed by a space stays text."""
        tokens = tokenize("<p>a < b</p>")

        assert tokens[1].is_text
        assert tokens[1].text == "a < b"

    def test_comments_are_dropped(self):
        """Test comments produce no tokens."""
        tokens = tokenize("<p>a<!-- hidden --></p>")

        assert [t.text for t in tokens if t.is_text] == ["a"]

    def test_unclosed_tag_becomes_text(self):
        """Test an unterminated tag leaves the remainder as text."""
        tokens = tokenize("<p>text</p><img src=")

        assert tokens[-1].is_text
        assert tokens[-1].text == "<img src="

    def test_find_matching_end_skips_nested(self):
        """Test depth tracking over nested lists."""
        tokens = tokenize("<ul><li>a<ol><li>b</li></ol></li></ul><p>x</p>")

        end = find_matching_end(tokens, 0, ("ol", "ul"))

        assert tokens[end].closes("ul")
        assert tokens[end + 1].opens("p")

    def test_find_matching_end_unclosed(self):
        """Test -1 is returned for an element that never closes."""
        tokens = tokenize("<ul><li>a</li>")

        assert find_matching_end(tokens, 0, ("ul",)) == -1


class TestStyleMarkers:
    """Tests for inline style encoding."""

    def test_bold_italic_underline_strike(self):
        """Test each style maps to its marker."""
        normalizer = TextNormalizer()

        text = normalizer.normalize(
            "<p><strong>b</strong> <em>i</em> <u>u</u> <s>s</s></p>"
        )

        assert text == "**b** *i* __u__ ~~s~~"

    def test_empty_style_run_leaves_no_marker(self):
        """Test styled whitespace does not produce stray markers."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<p><strong> </strong>Text</p>") == "Text"

    def test_normalization_is_idempotent(self):
        """Test normalizing normalized text changes nothing."""
        normalizer = TextNormalizer()

        once = normalizer.normalize("<p>Hello <strong>world</strong> and <em>more</em></p>")

        assert normalizer.normalize(once) == once

    def test_entities_are_unescaped(self):
        """Test HTML entities are decoded."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<p>A &amp; B</p>") == "A & B"

    def test_escaped_markup_stays_text(self):
        """Test escaped tags survive a second pass unchanged."""
        normalizer = TextNormalizer()

        once = normalizer.normalize("<p>a &lt;b&gt;x&lt;/b&gt;</p>")

        assert "**" not in once
        assert normalizer.normalize(once) == once

    def test_escaped_entity_stays_literal(self):
        normalizer = TextNormalizer()

        once = normalizer.normalize("<p>write &amp;lt; for less-than</p>")

        assert normalizer.normalize(once) == once

    def test_edge_whitespace_moves_outside_markers(self):
        """Test spaces at the edges of a style run end up outside it."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<p><strong>Title </strong>rest</p>") == "**Title** rest"
        assert normalizer.normalize("<p>a<em> b</em></p>") == "a *b*"

    def test_paragraphs_separated_by_blank_line(self):
        """Test consecutive paragraphs are separated by one blank line."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<p>one</p><p>two</p>") == "one\n\ntwo"

    def test_line_break_outside_list(self):
        """Test a break becomes a newline."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<p>a<br>b</p>") == "a\nb"


class TestLists:
    """Tests for list prefix encoding."""

    @pytest.mark.parametrize("depth", [1, 2, 3, 4, 5])
    def test_prefix_length_is_capped(self, depth):
        """Test nesting depth d gives a prefix of min(d, max) characters."""
        normalizer = TextNormalizer(max_list_depth=3)

        lines = normalizer.normalize(_nested_list(depth)).split("\n")

        assert len(lines) == depth
        last_prefix = lines[-1].split(" ", 1)[0]
        assert last_prefix == "*" * min(depth, 3)

    def test_ordered_list_uses_dots(self):
        """Test ordered list items are prefixed with dots."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<ol><li>One</li><li>Two</li></ol>") == ". One\n. Two"

    def test_custom_max_depth(self):
        """Test the depth cap is configurable."""
        normalizer = TextNormalizer(max_list_depth=1)

        assert normalizer.normalize(_nested_list(2)) == "* item1\n* item2"

    def test_break_inside_item_is_a_space(self):
        """Test a line break inside a list item keeps the item on one line."""
        normalizer = TextNormalizer()

        assert normalizer.normalize("<ul><li>a<br>b</li></ul>") == "* a b"

    def test_invalid_max_depth(self):
        """Test max_list_depth must be positive."""
        with pytest.raises(ValueError):
            TextNormalizer(max_list_depth=0)


class TestImages:
    """Tests for inline image tokens."""

    def test_data_uri_becomes_token(self):
        """Test an embedded image is encoded as an image token."""
        normalizer = TextNormalizer()

        text = normalizer.normalize('<p><img src="data:image/png;base64,AAAA"></p>')

        assert text == "image:data:image/png;base64,AAAA[]"

    def test_image_without_data_is_skipped(self):
        """Test external images are dropped with a warning."""
        normalizer = TextNormalizer()
        handler = ErrorHandler("doc.docx")

        text = normalizer.normalize('<p>x<img src="http://example.org/a.png"></p>', handler)

        assert text == "x"
        assert any("Skipping image without inline data" in w for w in handler.warnings)

    def test_transcoder_is_applied(self):
        """Test the transcoder rewrites the content type and payload."""

        class FakeTranscoder:
            def transcode(self, content_type, payload):
                return "image/png", "QUJD"

        normalizer = TextNormalizer(image_transcoder=FakeTranscoder())

        text = normalizer.normalize('<img src="data:image/bmp;base64,Qk0=">')

        assert text == "image:data:image/png;base64,QUJD[]"


class TestMalformedMarkup:
    """Tests for recovery from malformed markup."""

    def test_mismatched_closer_pops_to_match(self):
        """Test a closer for an outer element closes the inner ones."""
        normalizer = TextNormalizer()
        handler = ErrorHandler("doc.docx")

        text = normalizer.normalize("<p><strong>bold</p>", handler)

        assert text == "**bold**"
        assert any("Mismatched closing tag </p>" in w for w in handler.warnings)

    def test_stray_closer_is_ignored(self):
        """Test a closer without an open element is ignored."""
        normalizer = TextNormalizer()
        handler = ErrorHandler("doc.docx")

        text = normalizer.normalize("text</div>", handler)

        assert text == "text"
        assert any("no open element" in w for w in handler.warnings)

    def test_unterminated_elements_are_closed(self):
        """Test open elements are closed at end of input."""
        normalizer = TextNormalizer()
        handler = ErrorHandler("doc.docx")

        text = normalizer.normalize("<p><em>open", handler)

        assert text == "*open*"
        assert len(handler.warnings) == 2

    def test_empty_input(self):
        """Test empty markup gives empty text."""
        assert TextNormalizer().normalize("") == ""
