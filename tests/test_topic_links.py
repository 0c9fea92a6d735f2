"""Tests for topic-link extraction."""

from __future__ import annotations

from backend.reader.models import TopicLink
from backend.reader.topic_links import build_topic_pattern, extract_topic_links


class TestMarkdown:
    def test_topic_link_is_lifted_out(self):
        result = extract_topic_links(
            "[Chain-of-Thought Prompting](https://x.com/cot) is useful. "
            "[Privacy Policy](https://x.com/priv)"
        )
        assert result.topic_links == [
            TopicLink(text="Chain-of-Thought Prompting", href="https://x.com/cot")
        ]
        assert result.markdown == "is useful. [Privacy Policy](https://x.com/priv)"

    def test_highlight_markup_in_anchor_text_is_ignored(self):
        result = extract_topic_links(
            '[Chain-of-Thought <mark class="highlight highlight-yellow" '
            'style="background-color: #fef08a">Prompting</mark>](https://x.com/cot) is useful.'
        )
        assert result.topic_links == [
            TopicLink(text="Chain-of-Thought Prompting", href="https://x.com/cot")
        ]
        assert result.markdown == "is useful."

    def test_mid_line_link_keeps_surrounding_text(self):
        result = extract_topic_links("Read [Tree of Thoughts](https://a.com/tot) today.")
        assert result.markdown == "Read today."
        assert result.topic_links[0].href == "https://a.com/tot"

    def test_line_end_link_leaves_no_trailing_space(self):
        result = extract_topic_links("Intro text [ReAct](https://a.com/react)\nNext line")
        assert result.markdown == "Intro text\nNext line"

    def test_blocked_host_removed_without_card(self):
        result = extract_topic_links(
            "[Prompting on GitHub](https://github.com/x/prompts) more text"
        )
        assert result.topic_links == []
        assert result.markdown == "more text"

    def test_blocked_subdomain_and_www(self):
        result = extract_topic_links(
            "[Agent demo](https://www.youtube.com/watch?v=1)\n"
            "[Agent gists](https://gist.github.com/a)"
        )
        assert result.topic_links == []

    def test_fragment_removed_without_card(self):
        result = extract_topic_links("[Reasoning](#reasoning) rest")
        assert result.topic_links == []
        assert result.markdown == "rest"

    def test_duplicates_collected_once(self):
        result = extract_topic_links(
            "[Self-Consistency](https://a.com/1) and [self-consistency](https://a.com/2) end"
        )
        assert len(result.topic_links) == 1
        assert result.topic_links[0].href == "https://a.com/1"

    def test_text_outside_length_bounds_not_collected(self):
        pattern = build_topic_pattern(["ai"])
        result = extract_topic_links("[AI](https://a.com/ai) tools", topic_pattern=pattern)
        assert result.topic_links == []
        assert result.markdown == "tools"

    def test_non_topic_links_and_images_kept(self):
        content = "See [the docs](https://a.com/docs).\n\n![Prompt diagram](https://a.com/p.png)"
        result = extract_topic_links(content)
        assert result.markdown == content
        assert result.topic_links == []

    def test_idempotent_on_output(self):
        first = extract_topic_links(
            "Intro\n\n[Graph Prompting](https://a.com/g) works.\n\n\n\nEnd"
        )
        second = extract_topic_links(first.markdown)
        assert second.markdown == first.markdown
        assert second.topic_links == []

    def test_empty_vocabulary_matches_nothing(self):
        content = "[Chain-of-Thought](https://a.com/cot)"
        result = extract_topic_links(content, topic_pattern=build_topic_pattern([]))
        assert result.markdown == content


class TestHtml:
    def test_anchor_removed_and_collected(self):
        result = extract_topic_links(
            html='<p>See <a href="https://a.com/cot">Chain-of-Thought</a> and '
            '<a href="https://a.com/about">About us</a>.</p>'
        )
        assert result.topic_links == [TopicLink(text="Chain-of-Thought", href="https://a.com/cot")]
        assert result.html == '<p>See and <a href="https://a.com/about">About us</a>.</p>'

    def test_html_without_topics_is_identity(self):
        html = '<p><a href="https://a.com">Home</a></p>'
        assert extract_topic_links(html=html).html == html

    def test_dedupes_across_markdown_and_html(self):
        result = extract_topic_links(
            "[Prompt Chaining](https://a.com/pc) here",
            '<p><a href="https://a.com/pc2">Prompt chaining</a></p>',
        )
        assert [link.href for link in result.topic_links] == ["https://a.com/pc"]
        assert "Prompt chaining" not in result.html
