"""Tests for the output-token budget."""

from lang_bridge.messages import MessageCollection
from lang_bridge.models import ModelInfo
from lang_bridge.tokens import (
    FALLBACK_MAX_TOKENS,
    compute_max_output,
    estimate_messages_tokens,
    estimate_tokens,
)

LONG_MESSAGE = (
    "This is a longer message that will consume more tokens. "
    "It contains multiple sentences and should use up a significant "
    "portion of the context window."
)


def _shared(total: int = 4000, max_output: int = 2000) -> ModelInfo:
    return ModelInfo(id="shared", context_window_tokens=total, max_output_tokens=max_output)


def _fixed(total: int = 100000, max_output: int = 4000) -> ModelInfo:
    return ModelInfo(
        id="fixed", context_window_tokens=total, max_output_tokens=max_output,
        output_is_fixed=True,
    )


class TestEstimate:
    def test_chars_over_four_rounded_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_per_message_overhead(self):
        messages = [{"role": "user", "content": "abcd"}] * 3
        assert estimate_messages_tokens(messages) == 3 * (1 + 4)

    def test_message_objects_count_every_item(self):
        collection = MessageCollection("abcd")
        collection.add_assistant_message("efgh")
        assert estimate_messages_tokens(collection) == 2 * (1 + 4)


class TestSharedWindow:
    def test_short_prompt_gets_model_max(self):
        messages = [{"role": "user", "content": "Hello"}]
        assert compute_max_output(_shared(), messages) == 2000

    def test_long_history_shrinks_budget(self):
        messages = [{"role": "user", "content": LONG_MESSAGE}] * 50
        result = compute_max_output(_shared(), messages)
        assert 0 <= result < 2000

    def test_overflow_clamped_to_zero(self):
        messages = [{"role": "user", "content": "x" * 40000}]
        assert compute_max_output(_shared(), messages) == 0

    def test_caller_value_caps_result(self):
        messages = [{"role": "user", "content": "Hello"}]
        assert compute_max_output(_shared(), messages, 500) == 500


class TestFixedOutput:
    def test_caller_above_allowance_clamped(self):
        assert compute_max_output(_fixed(), [], 6000) == 4000

    def test_caller_below_allowance_kept(self):
        assert compute_max_output(_fixed(), [], 2000) == 2000

    def test_history_does_not_matter(self):
        messages = [{"role": "user", "content": LONG_MESSAGE}] * 50
        assert compute_max_output(_fixed(), messages) == 4000


class TestFallback:
    def test_unknown_model(self):
        assert compute_max_output(None, [{"role": "user", "content": "hi"}]) == FALLBACK_MAX_TOKENS
        assert FALLBACK_MAX_TOKENS == 4000

    def test_unknown_model_keeps_caller_value(self):
        assert compute_max_output(None, [], 1234) == 1234

    def test_non_token_context(self):
        info = ModelInfo(id="x", context_type="characters", context_window_tokens=1000)
        assert compute_max_output(info, []) == 4000

    def test_window_unknown_uses_model_max(self):
        info = ModelInfo(id="x", context_window_tokens=None, max_output_tokens=2000)
        assert compute_max_output(info, [{"role": "user", "content": "Hello"}]) == 2000

    def test_window_unknown_prefers_caller(self):
        info = ModelInfo(id="x", max_output_tokens=2000)
        assert compute_max_output(info, [], 3000) == 3000

    def test_max_output_unknown(self):
        info = ModelInfo(id="x", context_window_tokens=8000)
        assert compute_max_output(info, []) == FALLBACK_MAX_TOKENS
        assert compute_max_output(info, [], 700) == 700

    def test_fixed_without_allowance_falls_through(self):
        info = ModelInfo(id="x", context_window_tokens=8000, output_is_fixed=True)
        assert compute_max_output(info, [], 900) == 900
