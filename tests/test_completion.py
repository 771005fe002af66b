"""Tests for completion promise detection."""

import time

import pytest

from ralph.core.completion import (
    CompletionDetector,
    check_completion,
    find_candidates,
)
from ralph.core.intent import IntentFilter, RejectionRule

PROMISE = "ALL_PHASE2_TASKS_DONE"


class TestTagMatching:
    """Locating promise tags in the output."""

    def test_raw_promise_text_without_tags(self):
        output = "I am not outputting a completion promise: ALL_PHASE2_TASKS_DONE"
        assert check_completion(output, PROMISE) is False

    def test_no_tag_at_all(self):
        assert check_completion("Everything went fine.\nBye.", "DONE") is False
        assert check_completion("", "DONE") is False

    def test_standalone_tag(self):
        output = "Work finished.\n<promise>ALL_PHASE2_TASKS_DONE</promise>\n"
        assert check_completion(output, PROMISE) is True

    def test_tag_is_the_whole_output(self):
        assert check_completion("<promise>P</promise>", "P") is True

    def test_case_insensitive(self):
        assert check_completion("<PROMISE>done</Promise>", "DONE") is True

    def test_inner_whitespace_is_flexible(self):
        assert check_completion("<promise>  DONE\t</promise>", "DONE") is True
        assert check_completion("<promise>\nDONE\n</promise>", "DONE") is True

    def test_surrounding_whitespace_on_line(self):
        assert check_completion("ok\n    <promise>DONE</promise>   \n", "DONE") is True

    def test_other_token_does_not_match(self):
        assert check_completion("<promise>NOT_DONE_YET</promise>", "DONE") is False

    def test_regex_metacharacters_are_literal(self):
        assert check_completion("<promise>A.B*C</promise>", "A.B*C") is True
        assert check_completion("<promise>AXBYYC</promise>", "A.B*C") is False

    def test_more_metacharacters(self):
        token = "(done)+[1]?{2}|$^\\"
        assert check_completion(f"<promise>{token}</promise>", token) is True

    def test_find_candidates_reports_line(self):
        output = "first\n  <promise>X</promise>\nlast"
        candidates = list(find_candidates(output, "X"))

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.text == "<promise>X</promise>"
        assert candidate.line == "  <promise>X</promise>"
        assert output[candidate.start:candidate.end] == candidate.text
        assert candidate.is_standalone

    def test_find_candidates_all_occurrences(self):
        output = "<promise>X</promise><promise>x</promise>\n<promise>X</promise>"
        assert len(list(find_candidates(output, "X"))) == 3


class TestLineIsolation:
    """The tag must be the only content on its line."""

    def test_tag_embedded_in_prose(self):
        output = "When complete, output <promise>ALL_PHASE2_TASKS_DONE</promise> and continue."
        assert check_completion(output, PROMISE) is False

    def test_tag_with_trailing_text(self):
        assert check_completion("<promise>P</promise> done!", "P") is False

    def test_two_tags_on_one_line(self):
        assert check_completion("<promise>P</promise> <promise>P</promise>", "P") is False

    def test_inline_then_standalone(self):
        output = "Please output <promise>P</promise> now.\n<promise>P</promise>"
        assert check_completion(output, "P") is True


class TestFences:
    """Tags inside fenced code blocks are examples."""

    def test_tag_in_backtick_fence(self):
        output = "\n".join([
            "Here is the required format:",
            "```xml",
            "<promise>ALL_PHASE2_TASKS_DONE</promise>",
            "```",
        ])
        assert check_completion(output, PROMISE) is False

    def test_tag_after_fence_closes(self):
        output = "\n".join([
            "Example:",
            "```xml",
            "<promise>ALL_PHASE2_TASKS_DONE</promise>",
            "```",
            "",
            "<promise>ALL_PHASE2_TASKS_DONE</promise>",
        ])
        assert check_completion(output, PROMISE) is True

    def test_tag_in_tilde_fence(self):
        output = "~~~\n<promise>P</promise>\n~~~\n"
        assert check_completion(output, "P") is False

    def test_unclosed_fence(self):
        output = "```\nstill code\n<promise>P</promise>"
        assert check_completion(output, "P") is False

    def test_crlf_line_endings(self):
        output = "```\r\n<promise>P</promise>\r\n```\r\n<promise>P</promise>\r\n"
        assert check_completion(output, "P") is True


class TestIntent:
    """Negated and quoted mentions are not declarations."""

    def test_negated_tag_then_clean_tag(self):
        output = (
            "I will not say\n<promise>P</promise>\n"
            + "Now all tests pass and the work is verified end to end. " * 2
            + "\n<promise>P</promise>"
        )
        assert check_completion(output, "P") is True

    def test_negation_window_spans_previous_line(self):
        output = "I will not say <promise>P</promise>\n<promise>P</promise>"
        assert check_completion(output, "P") is False

    def test_negation_on_previous_line(self):
        output = "I will not output\n<promise>P</promise>\n"
        assert check_completion(output, "P") is False

    def test_not_yet_output(self):
        output = "The tests still fail so I can not yet output the tag:\n<promise>P</promise>"
        assert check_completion(output, "P") is False

    def test_open_quote_before_tag(self):
        output = 'When done I will print "\n<promise>P</promise>\n"'
        assert check_completion(output, "P") is False

    def test_balanced_quotes_before_tag(self):
        output = "I ran `pytest` and it's all green, it's done.\n<promise>P</promise>"
        assert check_completion(output, "P") is True

    def test_negation_outside_window_is_ignored(self):
        output = "I will not say it yet." + " filler" * 30 + "\n<promise>P</promise>"
        assert check_completion(output, "P") is True


class TestDetector:
    """CompletionDetector behaviour beyond the single function."""

    def test_blank_promise_never_matches(self):
        assert check_completion("<promise></promise>", "") is False
        assert check_completion("<promise>   </promise>", "   ") is False

    def test_idempotent(self):
        output = "```\n<promise>P</promise>\n```\nI won't say\n<promise>P</promise>\n<promise>P</promise>"
        first = check_completion(output, "P")
        second = check_completion(output, "P")
        assert first is second is False

    def test_input_not_mutated(self):
        output = "done\n<promise>P</promise>\n"
        copy = str(output)
        check_completion(output, "P")
        assert output == copy

    def test_custom_rule_chain(self):
        shouting = RejectionRule("shouting", lambda window: "!!!" in window)
        detector = CompletionDetector("P", intent=IntentFilter().with_rule(shouting))

        assert detector.is_complete("done\n<promise>P</promise>") is True
        assert detector.is_complete("done!!!\n<promise>P</promise>") is False

    def test_empty_rule_chain_accepts_quoted(self):
        detector = CompletionDetector("P", intent=IntentFilter(rules=[]))
        assert detector.is_complete('say "\n<promise>P</promise>') is True

    @pytest.mark.parametrize(
        "output,reason",
        [
            ("x <promise>P</promise>", "inline"),
            ("```\n<promise>P</promise>", "fenced"),
            ("don't print\n<promise>P</promise>", "negation"),
            ("`\n<promise>P</promise>", "quoting"),
            ("ok\n<promise>P</promise>", None),
        ],
    )
    def test_rejection_reason(self, output, reason):
        from ralph.core.fencing import FenceIndex

        detector = CompletionDetector("P")
        candidate = next(find_candidates(output, "P"))
        assert detector.rejection_reason(output, candidate, FenceIndex(output)) == reason


class TestLongInput:
    """Detection stays linear on long single-line output."""

    @pytest.mark.parametrize(
        "output",
        [
            "<promise>X</promise>",
            "  <promise>X</promise>\t",
            "a<promise>X</promise>",
            "<promise>X</promise>b",
            "line\n \r<promise>X</promise> \r\nnext",
            "x \n<promise>X</promise> y",
            "<promise>X</promise> <promise>X</promise>",
            " <promise>X</promise>\n",
        ],
    )
    def test_standalone_agrees_with_line_strip(self, output):
        for candidate in find_candidates(output, "X"):
            expected = candidate.line.strip() == candidate.text.strip()
            assert candidate.is_standalone is expected

    def test_many_inline_tags_on_one_line(self):
        output = "<promise>P</promise>" * 160_000

        started = time.perf_counter()
        assert check_completion(output, "P") is False
        elapsed = time.perf_counter() - started

        assert elapsed < 5.0

    def test_many_inline_tags_separated_by_spaces(self):
        output = "<promise>P</promise>   " * 100_000

        started = time.perf_counter()
        assert check_completion(output, "P") is False
        elapsed = time.perf_counter() - started

        assert elapsed < 5.0

    def test_rejections_logged_once_per_call(self, mocker):
        log = mocker.patch("ralph.core.completion.log")

        output = "a <promise>P</promise>\n" * 3 + "```\n<promise>P</promise>\n"
        assert check_completion(output, "P") is False

        log.debug.assert_called_once_with(
            "completion_not_detected", rejected={"inline": 3, "fenced": 1}
        )
        log.info.assert_not_called()

    def test_no_rejection_log_without_candidates(self, mocker):
        log = mocker.patch("ralph.core.completion.log")
        assert check_completion("nothing here", "P") is False
        log.debug.assert_not_called()
