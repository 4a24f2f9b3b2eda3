"""Prompt engine for subtitle batches.

This module builds the system and user prompts for one batch of cues. Main
dialogue and theme templates share the same structured request payload but
use different system prompts, since theme templates carry positional
``~pN:`` tokens instead of the parser's placeholder tokens.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..models.prompt import Message, PromptBundle
from subflow.core.languages import get_language_name

MAIN_KIND = "main"
THEME_KIND = "theme"

_OUTPUT_FORMAT = """## OUTPUT FORMAT
{
  "cues": [
    { "id": "original_id", "translatedText": "translated text with placeholders preserved" }
  ]
}"""

TRANSLATION_SYSTEM_PROMPT = f"""You are a professional subtitle translator working on timed dialogue.

## RULES (MANDATORY)
1. Reply with a single JSON object and nothing else - no markdown, no commentary.
2. Return exactly one entry per input cue, with the input id unchanged.
3. Never reorder, merge or split cues.
4. Keep every placeholder token (such as ⟦TAG_0⟧ or ⟦BR_0⟧) exactly as written.
   Tokens stand for formatting and line breaks; you may move a token within
   its cue when grammar requires it, but never drop, duplicate or edit one.

## STYLE
- Prefer natural, idiomatic phrasing over literal translation.
- Keep names, terminology and each character's register consistent.
- Subtitles are read quickly: keep lines short (about 42 characters) and
  respect existing line-break tokens.

{_OUTPUT_FORMAT}"""

THEME_SYSTEM_PROMPT = f"""You are a professional subtitle translator working on song lyrics
(opening, ending and insert songs) that are reused across many episodes.

## RULES (MANDATORY)
1. Reply with a single JSON object and nothing else - no markdown, no commentary.
2. Return exactly one entry per input cue, with the input id unchanged.
3. Never reorder, merge or split cues.
4. Tokens of the form ~p0:, ~p1:, ~pa: mark karaoke timing and formatting.
   Every token must appear exactly once in your translation, spelled
   exactly as in the input. Keep them in the same order where possible.

## STYLE
- Translate the meaning of the lyric so it reads well as a song line.
- Keep romanized or already-translated lines as they are.

{_OUTPUT_FORMAT}"""

TRANSLATION_RULES: Dict[str, Any] = {
    "placeholders": "MUST_PRESERVE_EXACTLY",
    "noReordering": True,
    "noMerging": True,
    "noSplitting": True,
}


@dataclass(frozen=True)
class PromptItem:
    """One unit of text sent to the backend, keyed by cue or group id."""

    id: str
    text: str


class PromptEngine:
    """Builds prompt bundles for subtitle batches."""

    _system_prompts: Dict[str, str] = {
        MAIN_KIND: TRANSLATION_SYSTEM_PROMPT,
        THEME_KIND: THEME_SYSTEM_PROMPT,
    }

    @classmethod
    def get_system_prompt(cls, kind: str) -> str:
        """Get the system prompt for a cue set kind.

        Raises:
            ValueError: If the kind is unknown
        """
        prompt = cls._system_prompts.get(kind)
        if prompt is None:
            raise ValueError(f"No system prompt registered for kind: {kind}")
        return prompt

    @staticmethod
    def build_request_payload(
        items: Sequence[PromptItem],
        source_lang: str,
        target_lang: str,
    ) -> Dict[str, Any]:
        """Build the structured request embedded in the user prompt.

        Args:
            items: Prompt items for one batch
            source_lang: Source language code
            target_lang: Target language code

        Returns:
            JSON-serializable request payload
        """
        return {
            "sourceLang": get_language_name(source_lang),
            "targetLang": get_language_name(target_lang),
            "rules": dict(TRANSLATION_RULES),
            "cues": [{"id": item.id, "text": item.text} for item in items],
        }

    @classmethod
    def build_user_prompt(cls, payload: Dict[str, Any]) -> str:
        return (
            f"Translate the following subtitle cues from {payload['sourceLang']} "
            f"to {payload['targetLang']}.\n\n"
            f"{json.dumps(payload, ensure_ascii=False)}"
        )

    @classmethod
    def build(
        cls,
        items: Sequence[PromptItem],
        source_lang: str,
        target_lang: str,
        *,
        kind: str = MAIN_KIND,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> PromptBundle:
        """Build the prompt bundle for one batch.

        Args:
            items: Prompt items for the batch
            source_lang: Source language code
            target_lang: Target language code
            kind: ``main`` or ``theme``
            temperature: Sampling temperature
            max_tokens: Optional response length limit

        Returns:
            PromptBundle ready for a backend call
        """
        payload = cls.build_request_payload(items, source_lang, target_lang)
        messages: List[Message] = [
            Message(role="system", content=cls.get_system_prompt(kind)),
            Message(role="user", content=cls.build_user_prompt(payload)),
        ]
        return PromptBundle(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            kind=kind,
            item_ids=[item.id for item in items],
        )
