"""
Prompt Composition Tests — and_then algebra, scoping, rendering.

Covers:
  - prompt_text normalization
  - and_then identity, associativity, de-duplication
  - enable() scoping
  - lazy callable parts (sync and async)
  - rendered system and reminder messages, tool sections, separators
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from reasonloop.core.ai import AI
from reasonloop.core.conversation import SystemMessage, UserMessage
from reasonloop.core.prompt import DEFAULT, Prompt, enriched_context, prompt_text, render
from reasonloop.core.tool import Tool
from reasonloop.prompts.behavioral_rules import (
    MAIN_SEPARATOR, OPERATIONAL_PROMPT, REMINDER_HEADER, SECTION_SEPARATOR,
)


async def _rendered(prompt: Prompt):
    ai = AI()
    return await prompt.render_prompts(ai), await prompt.render_reminders(ai)


# ═══════════════════════════════════════════════════════════════════
#  Text helpers
# ═══════════════════════════════════════════════════════════════════


class TestPromptText:

    def test_strips_indentation(self):
        text = """
            You are a reviewer.
              Be terse.
        """
        assert prompt_text(text) == "You are a reviewer.\nBe terse."

    def test_blank_parts_dropped(self):
        prompt = Prompt.init("do it", reminder="   ")
        assert prompt.prompts == ("do it",)
        assert prompt.reminders == ()

    def test_empty(self):
        assert Prompt.empty().is_empty
        assert Prompt.init("").is_empty


# ═══════════════════════════════════════════════════════════════════
#  Algebra
# ═══════════════════════════════════════════════════════════════════


class TestAndThen:

    def test_identity(self):
        p = Prompt.init("a", "ra")
        assert Prompt.empty().and_then(p) == p
        assert p.and_then(Prompt.empty()) == p

    def test_self_absorption(self):
        p = Prompt.init("a", "ra")
        assert p.and_then(p) is p

    def test_concatenates_both_sequences(self):
        combined = Prompt.init("a", "ra").and_then(Prompt.init("b", "rb"))
        assert combined.prompts == ("a", "b")
        assert combined.reminders == ("ra", "rb")

    @pytest.mark.asyncio
    async def test_associative(self):
        a, b, c = Prompt.init("a", "ra"), Prompt.init("b"), Prompt.init("c", "rc")
        left = a.and_then(b).and_then(c)
        right = a.and_then(b.and_then(c))
        assert left == right
        assert await _rendered(left) == await _rendered(right)

    @pytest.mark.asyncio
    async def test_associative_with_duplicates(self):
        a, b = Prompt.init("a", "ra"), Prompt.init("b", "rb")
        left = a.and_then(b).and_then(b)
        right = a.and_then(b.and_then(b))
        assert left == right
        assert await _rendered(left) == await _rendered(right)

    def test_associative_with_self_duplicate(self):
        p, q = Prompt.init("p", "rp"), Prompt.init("q", "rq")
        left = p.and_then(p).and_then(q)
        right = p.and_then(p.and_then(q))
        assert left == right
        assert left.prompts == ("p", "q")
        assert left.reminders == ("rp", "rq")

    def test_callables_deduplicated_by_identity(self):
        def stamp(ai):
            return "now"

        def other_stamp(ai):
            return "now"

        combined = Prompt.init(stamp).and_then(Prompt.init(stamp)).and_then(Prompt.init(other_stamp))
        assert combined.prompts == (stamp, other_stamp)

    @pytest.mark.asyncio
    async def test_duplicates_removed(self):
        combined = Prompt.init("a").and_then(Prompt.init("b")).and_then(Prompt.init("a"))
        assert combined.prompts == ("a", "b")
        prompts, _ = await _rendered(combined)
        assert prompts == ["a", "b"]

    @pytest.mark.asyncio
    async def test_reminders_never_dropped(self):
        combined = Prompt.init("a", "ra").and_then(Prompt.init("b"))
        _, reminders = await _rendered(combined)
        assert reminders == ["ra"]


# ═══════════════════════════════════════════════════════════════════
#  Scope and lazy parts
# ═══════════════════════════════════════════════════════════════════


class TestScope:

    def test_enable_layers_and_restores(self):
        outer, inner = Prompt.init("outer"), Prompt.init("inner")
        with outer.enable():
            with inner.enable():
                assert Prompt.current().prompts == ("outer", "inner")
            assert Prompt.current().prompts == ("outer",)
        assert Prompt.current().is_empty

    def test_class_style_enable(self):
        p = Prompt.init("x")
        with Prompt.enable(p):
            assert Prompt.current() == p

    @pytest.mark.asyncio
    async def test_callable_parts_see_live_session(self):
        ai = AI()
        prompt = Prompt.init(lambda session: f"{len(session.conversation)} messages so far")
        ai.user_message("one")
        assert await prompt.render_prompts(ai) == ["1 messages so far"]
        ai.user_message("two")
        assert await prompt.render_prompts(ai) == ["2 messages so far"]

    @pytest.mark.asyncio
    async def test_async_callable_part(self):
        async def part(session):
            return "async text"

        assert await Prompt.init(part).render_prompts(AI()) == ["async text"]


# ═══════════════════════════════════════════════════════════════════
#  Rendering
# ═══════════════════════════════════════════════════════════════════


def _echo_tool(prompt=None):
    return Tool.init(str, "echo", "Echoes input", prompt, run=lambda s: s)


class TestRender:

    @pytest.mark.asyncio
    async def test_default_prompt_always_present(self):
        system, reminder = await render(AI(), ())
        assert system == prompt_text(OPERATIONAL_PROMPT)
        assert reminder.startswith(REMINDER_HEADER)

    @pytest.mark.asyncio
    async def test_user_prompt_before_default(self):
        with Prompt.init("You are a reviewer.").enable():
            system, _ = await render(AI(), ())
        assert system.startswith("You are a reviewer." + MAIN_SEPARATOR)

    @pytest.mark.asyncio
    async def test_reminders_joined_by_section_separator(self):
        with Prompt.init("p", "Be terse.").enable():
            _, reminder = await render(AI(), ())
        assert reminder.startswith(REMINDER_HEADER + "Be terse." + SECTION_SEPARATOR)

    @pytest.mark.asyncio
    async def test_tool_section(self):
        tool = _echo_tool(Prompt.init("Use echo sparingly."))
        system, reminder = await render(AI(), tool.infos)
        assert "TOOL: echo" in system
        assert "DESCRIPTION: Echoes input" in system
        assert "Use echo sparingly." in system
        assert "TOOL REMINDER" not in reminder

    @pytest.mark.asyncio
    async def test_tool_reminder_section(self):
        tool = _echo_tool(Prompt.init("p", "Never echo secrets."))
        _, reminder = await render(AI(), tool.infos)
        assert "TOOL REMINDER: echo" in reminder
        assert "Never echo secrets." in reminder

    @pytest.mark.asyncio
    async def test_enriched_context_order(self):
        ai = AI()
        ai.user_message("question")
        context = await enriched_context(ai, ())
        messages = context.messages
        assert isinstance(messages[0], SystemMessage)
        assert messages[1] == UserMessage("question")
        assert isinstance(messages[-1], SystemMessage)
        assert messages[-1].content.startswith(REMINDER_HEADER)

    def test_default_prompt_mentions_result_tool(self):
        assert "result_tool" in DEFAULT.prompts[0]
