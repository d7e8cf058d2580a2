"""Keyword heuristics for follow-up prompt suggestions."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

MAX_SUGGESTIONS = 3

STARTER_SUGGESTIONS: tuple[str, ...] = (
    "Tell me about the latest AI developments",
    "Help me write a professional email",
    "Explain quantum computing simply",
)


@dataclass(frozen=True)
class SuggestionRule:
    """Suggest ``prompt`` when the text mentions any of ``keywords``."""

    keywords: tuple[str, ...]
    prompt: str

    def matches(self, lowered_text: str) -> bool:
        return any(keyword in lowered_text for keyword in self.keywords)


DEFAULT_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(("ai", "model"), "How does this compare to other AI models?"),
    SuggestionRule(
        ("code", "programming"), "Can you write a function to sort an array?"
    ),
    SuggestionRule(("help", "explain"), "I'd like to learn more about this topic"),
)

GENERIC_SUGGESTIONS: tuple[str, ...] = (
    "Tell me something interesting",
    "What else can you help me with?",
    "Can you give me a practical example?",
)


class SuggestionEngine:
    """Derive exactly three follow-up prompts from an assistant reply.

    Keywords are matched as substrings of the lowercased text, so ``"ai"``
    also fires on words such as ``"explain"``.
    """

    def __init__(
        self,
        rules: Sequence[SuggestionRule] = DEFAULT_RULES,
        generic: Sequence[str] = GENERIC_SUGGESTIONS,
        limit: int = MAX_SUGGESTIONS,
    ) -> None:
        self.rules = tuple(rules)
        self.generic = tuple(generic)
        self.limit = limit

    def suggest(self, last_assistant_message: str) -> list[str]:
        lowered = last_assistant_message.lower()
        suggestions = [rule.prompt for rule in self.rules if rule.matches(lowered)]
        for prompt in self.generic:
            if len(suggestions) >= self.limit:
                break
            if prompt not in suggestions:
                suggestions.append(prompt)
        return suggestions[: self.limit]
