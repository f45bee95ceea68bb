"""
启发式规则回归用例（Heuristic Rules）

每条规则直接以 LintContext 调用，不经过规则引擎。
"""

import pytest

from promptier.core.fragment import Fragment
from promptier.core.prompt import prompt
from promptier.core.section import Section
from promptier.lint.rules.heuristic import (
    HEURISTIC_RULES,
    conflicting_patterns,
    duplicate_instructions,
    dynamic_before_static,
    empty_sections,
    find_duplicate_sentences,
    format_not_last,
    markdown_with_claude,
    missing_identity,
    static_text,
    token_limit_exceeded,
    token_limit_warning,
    user_input_in_system,
    xml_tags_with_gpt,
)
from promptier.lint.types import LintContext, ModelFacts


def make_ctx(sections=(), text="", model_id="claude-sonnet-4-20250514", token_count=100, window=200_000, options=None):
    builder = prompt("test").model(model_id)
    for section in sections:
        builder.section(section)
    p = builder.build()
    return LintContext(
        prompt=p,
        text=text,
        sections=p.sections,
        model_id=model_id,
        model_config=ModelFacts(context_window=window, preferred_format="xml", supports_caching=True),
        token_count=token_count,
        options=options,
    )


class TestRuleTable:
    def test_registration_order(self):
        assert [r.id for r in HEURISTIC_RULES] == [
            "token-limit-exceeded",
            "token-limit-warning",
            "xml-tags-with-gpt",
            "markdown-with-claude",
            "dynamic-before-static",
            "missing-identity",
            "format-not-last",
            "duplicate-instructions",
            "user-input-in-system",
            "empty-sections",
            "conflicting-patterns",
        ]

    def test_default_severities(self):
        severities = {r.id: r.default_severity for r in HEURISTIC_RULES}
        assert severities["token-limit-exceeded"] == "error"
        assert severities["user-input-in-system"] == "error"
        assert severities["markdown-with-claude"] == "info"
        assert severities["format-not-last"] == "info"


class TestTokenRules:
    def test_exceeded_message_embeds_numbers(self):
        findings = token_limit_exceeded.check(make_ctx(token_count=250_000, window=200_000))
        assert len(findings) == 1
        assert "250,000" in findings[0].message
        assert "200,000" in findings[0].message

    def test_warning_not_raised_when_exceeded(self):
        assert token_limit_warning.check(make_ctx(token_count=250_000, window=200_000)) == []

    def test_warning_default_threshold(self):
        assert token_limit_warning.check(make_ctx(token_count=170_000, window=200_000))
        assert token_limit_warning.check(make_ctx(token_count=150_000, window=200_000)) == []

    def test_warning_threshold_option(self):
        ctx = make_ctx(token_count=150_000, window=200_000, options={"threshold": 0.7})
        findings = token_limit_warning.check(ctx)
        assert len(findings) == 1
        assert "75% of limit, threshold: 70%" in findings[0].message

    def test_invalid_threshold_falls_back(self):
        ctx = make_ctx(token_count=150_000, window=200_000, options={"threshold": "high"})
        assert token_limit_warning.check(ctx) == []


class TestModelMismatch:
    def test_xml_with_gpt(self):
        assert xml_tags_with_gpt.check(make_ctx(text="<identity>x</identity>", model_id="gpt-4o"))
        assert xml_tags_with_gpt.check(make_ctx(text="## Identity", model_id="gpt-4o")) == []
        assert xml_tags_with_gpt.check(make_ctx(text="<identity>x</identity>")) == []

    def test_markdown_with_claude(self):
        assert markdown_with_claude.check(make_ctx(text="## Identity\n\nYou are helpful."))
        assert markdown_with_claude.check(make_ctx(text="## Identity\n<tools>x</tools>")) == []
        assert markdown_with_claude.check(make_ctx(text="## Identity", model_id="gpt-4o")) == []


class TestStructureRules:
    def test_dynamic_before_static(self):
        sections = [Section.context(lambda ctx: "x"), Section.identity("Agent.")]
        assert dynamic_before_static.check(make_ctx(sections))
        assert dynamic_before_static.check(make_ctx(list(reversed(sections)))) == []

    def test_missing_identity(self):
        assert missing_identity.check(make_ctx([Section.format("JSON.")]))
        assert missing_identity.check(make_ctx([Section.identity("Agent.")])) == []

    def test_format_not_last(self):
        assert format_not_last.check(make_ctx([Section.format("JSON."), Section.domain("Facts.")]))
        assert format_not_last.check(make_ctx([Section.domain("Facts."), Section.format("JSON.")])) == []
        assert format_not_last.check(make_ctx([Section.domain("Facts.")])) == []

    def test_empty_sections(self):
        sections = [Section.identity("  "), Section.context(lambda ctx: ""), Section.custom("notes", "")]
        findings = empty_sections.check(make_ctx(sections))
        assert [f.message for f in findings] == ["Empty identity section.", "Empty notes section."]

    def test_static_text(self):
        assert static_text(Section.identity(Fragment.define("p", "Hi."))) == "Hi."
        assert static_text(Section.context(lambda ctx: "x")) == ""


class TestDuplicateInstructions:
    SENTENCE = (
        "The assistant must always verify the customer account number and postal code before sharing "
        "any billing or payment details with the person on the line"
    )

    def test_duplicate_reported_at_second_occurrence(self):
        text = f"{self.SENTENCE}. {self.SENTENCE}."
        findings = duplicate_instructions.check(make_ctx(text=text))
        assert len(findings) == 1
        position = findings[0].position
        assert position.start == len(self.SENTENCE) + 2
        assert position.end - position.start == len(self.SENTENCE)
        assert position.line == 1

    def test_case_insensitive(self):
        assert find_duplicate_sentences("Always answer in English please. ALWAYS ANSWER IN ENGLISH PLEASE!")

    def test_short_sentences_ignored(self):
        assert find_duplicate_sentences("Be nice. Be nice. Be nice.") == []

    def test_message_truncated(self):
        text = f"{self.SENTENCE}. {self.SENTENCE}."
        message = duplicate_instructions.check(make_ctx(text=text))[0].message
        assert message.endswith('..."')


class TestUserInputInSystem:
    @pytest.mark.parametrize(
        "content",
        [
            "Greet {{user.name}} warmly.",
            "Use $user.email for receipts.",
            "Echo the user_input back.",
            "Wrap <user_input> carefully.",
            "[USER INPUT] goes here.",
        ],
    )
    def test_markers_detected(self, content):
        text = f"<identity>{content}</identity>"
        findings = user_input_in_system.check(make_ctx([Section.identity(content)], text=text))
        assert len(findings) == 1
        assert findings[0].severity == "error"
        assert findings[0].position is not None

    def test_position_points_at_marker(self):
        content = "Greet {{user.name}} warmly."
        text = f"<identity>{content}</identity>"
        finding = user_input_in_system.check(make_ctx([Section.identity(content)], text=text))[0]
        assert text[finding.position.start : finding.position.end] == "{{user.name}}"

    def test_context_sections_exempt(self):
        section = Section.context(lambda ctx: "{{user.name}}")
        assert user_input_in_system.check(make_ctx([section], text="{{user.name}}")) == []

    def test_fragment_id_reported(self):
        fragment = Fragment.define("greeter", "Say hi to {{user.name}}.")
        finding = user_input_in_system.check(make_ctx([Section.identity(fragment)], text="x"))[0]
        assert finding.fragments == ("greeter",)
        assert finding.position is None


class TestConflictingPatterns:
    def test_always_never_pair(self):
        findings = conflicting_patterns.check(make_ctx(text="Always use tables. Never use tables."))
        assert [(f.severity, f.message) for f in findings] == [
            ("warning", 'Conflicting instructions: both "always use tables" and "never use tables" found.')
        ]

    def test_concise_vs_detailed(self):
        findings = conflicting_patterns.check(make_ctx(text="Be concise. Give comprehensive answers."))
        assert [f.severity for f in findings] == ["info"]

    def test_no_conflict(self):
        assert conflicting_patterns.check(make_ctx(text="Always be polite.")) == []
