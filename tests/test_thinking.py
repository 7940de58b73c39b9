"""Tests for inline <think> tag extraction."""

from __future__ import annotations

from lang_bridge.streaming.thinking import ThinkTagSplitter, split_think_tags


class TestSplitThinkTags:
    def test_no_tags(self):
        assert split_think_tags("plain answer") == ("", "plain answer")

    def test_complete_block(self):
        thinking, visible = split_think_tags("<think>plan it</think>\nThe answer")
        assert thinking == "plan it"
        assert visible == "The answer"

    def test_multiple_blocks_joined(self):
        thinking, visible = split_think_tags("<think>a</think>x<think>b</think>y")
        assert thinking == "a\nb"
        assert visible == "xy"

    def test_unclosed_block_is_provisional_reasoning(self):
        thinking, visible = split_think_tags("<think>still going")
        assert thinking == "still going"
        assert visible == ""

    def test_partial_open_tag_held_back(self):
        assert split_think_tags("Hello <thi") == ("", "Hello ")

    def test_partial_open_tag_released_at_end(self):
        assert split_think_tags("Hello <thi", final=True) == ("", "Hello <thi")

    def test_partial_close_tag_held_back(self):
        thinking, _ = split_think_tags("<think>abc</thi")
        assert thinking == "abc"

    def test_unclosed_block_at_end_stays_reasoning(self):
        thinking, visible = split_think_tags("<think>abc", final=True)
        assert thinking == "abc"
        assert visible == ""


class TestThinkTagSplitter:
    def test_tag_split_across_chunks(self):
        splitter = ThinkTagSplitter()
        seen = [splitter.feed(c) for c in ["<th", "ink>rea", "soning</th", "ink>Answer"]]
        assert seen[0] == ("", "")
        assert seen[1] == ("rea", "")
        assert seen[-1] == ("reasoning", "Answer")
        assert splitter.finish() == ("reasoning", "Answer")

    def test_answer_never_contains_tag_text(self):
        splitter = ThinkTagSplitter()
        for chunk in ["<", "think", ">", "x", "</", "think", ">", "y"]:
            _, visible = splitter.feed(chunk)
            assert "<" not in visible
        assert splitter.finish() == ("x", "y")
