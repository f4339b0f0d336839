"""
Directive Evals -- NEED_HUMAN_INPUT / SEARCH extraction from free text.
"""

from warroom.orchestration.directives import DirectiveExtractor, MarkerDirectiveExtractor


class TestEscalationExtraction:
    """Eval: Are human questions found exactly where agents put them?"""

    def test_extracts_questions_in_order(self):
        text = (
            "Analysis first.\n"
            "NEED_HUMAN_INPUT: What is the budget?\n"
            "More analysis.\n"
            "NEED_HUMAN_INPUT: Who owns the decision?"
        )
        assert MarkerDirectiveExtractor().escalations(text) == [
            "What is the budget?",
            "Who owns the decision?",
        ]

    def test_respects_limit(self):
        text = "\n".join(f"NEED_HUMAN_INPUT: question {i}" for i in range(7))
        assert len(MarkerDirectiveExtractor().escalations(text, limit=5)) == 5

    def test_tolerates_markdown_and_brackets(self):
        text = "- **NEED_HUMAN_INPUT:** [What is the team size?]"
        assert MarkerDirectiveExtractor().escalations(text) == ["What is the team size?"]

    def test_numbered_list_markers(self):
        text = (
            "Gaps:\n"
            "1. NEED_HUMAN_INPUT: What is the budget?\n"
            "2. NEED_HUMAN_INPUT: Who owns the decision?\n"
        )
        assert MarkerDirectiveExtractor().escalations(text) == [
            "What is the budget?",
            "Who owns the decision?",
        ]

    def test_inline_marker_after_prose(self):
        text = "One gap remains. NEED_HUMAN_INPUT: What is the budget?"
        assert MarkerDirectiveExtractor().escalations(text) == ["What is the budget?"]

    def test_one_question_per_line(self):
        text = "NEED_HUMAN_INPUT: Budget? NEED_HUMAN_INPUT: Timeline?"
        assert MarkerDirectiveExtractor().escalations(text) == [
            "Budget? NEED_HUMAN_INPUT: Timeline?"
        ]

    def test_ignores_empty_payload_and_longer_words(self):
        text = "NEED_HUMAN_INPUT:   \nXNEED_HUMAN_INPUT: not a marker\n"
        assert MarkerDirectiveExtractor().escalations(text) == []

    def test_no_directives_in_plain_text(self):
        assert MarkerDirectiveExtractor().escalations("Nothing to ask.") == []
        assert MarkerDirectiveExtractor().escalations("") == []


class TestSearchExtraction:
    """Eval: Are search queries found, bounded and strippable?"""

    def test_queries_deduplicated_and_bounded(self):
        text = "\n".join(
            ["SEARCH: EU AI act timeline", "SEARCH: EU AI act timeline"]
            + [f"SEARCH: topic {i}" for i in range(10)]
        )
        queries = MarkerDirectiveExtractor().search_queries(text, limit=5)
        assert queries == [
            "EU AI act timeline", "topic 0", "topic 1", "topic 2", "topic 3",
        ]

    def test_strip_removes_only_search_lines(self):
        text = "Intro\nSEARCH: first\nSEARCH: second\nConclusion\nNEED_HUMAN_INPUT: keep me"
        stripped = MarkerDirectiveExtractor().strip_search_directives(text)
        assert "SEARCH:" not in stripped
        assert stripped == "Intro\n\nConclusion\nNEED_HUMAN_INPUT: keep me"

    def test_implements_protocol(self):
        assert isinstance(MarkerDirectiveExtractor(), DirectiveExtractor)

    def test_numbered_queries_found_and_stripped(self):
        text = "Plan:\n1. SEARCH: office rents lisbon\n2. **SEARCH:** hiring porto"
        extractor = MarkerDirectiveExtractor()
        assert extractor.search_queries(text) == ["office rents lisbon", "hiring porto"]
        assert extractor.strip_search_directives(text) == "Plan:"

    def test_strip_keeps_words_containing_the_marker(self):
        text = "RESEARCH: notes stay\nSee below. SEARCH: drop this line"
        assert MarkerDirectiveExtractor().strip_search_directives(text) == "RESEARCH: notes stay"
