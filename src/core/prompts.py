"""
Prompt enhancement for image generation.

Prompts that ask for an infographic are rewritten before dispatch so the
image model favours educational layouts. The rewrite only ever applies to
the text sent to the generation service; history always stores what the
user typed.
"""

from dataclasses import dataclass


# =============================================================================
# INFOGRAPHIC ENHANCEMENT
# =============================================================================

# English keyword (matched case-insensitively) and its Arabic equivalent
INFOGRAPHIC_TRIGGERS = ("infographic", "إنفوجرافيك")

INFOGRAPHIC_STYLE_DIRECTIVE = (
    "Design a professional educational visual explainer with a clear, "
    "well-structured layout: titled sections, flat vector illustrations and "
    "icons, concise readable labels and a balanced color palette, suitable "
    "for classroom teaching material. Subject: "
)


@dataclass(frozen=True)
class PreparedPrompt:
    """A user prompt paired with the text actually dispatched."""
    original: str
    dispatched: str

    @property
    def enhanced(self) -> bool:
        return self.dispatched != self.original


def is_infographic_prompt(prompt: str) -> bool:
    """Return True when the prompt contains any infographic trigger."""
    lowered = prompt.casefold()
    return any(trigger.casefold() in lowered for trigger in INFOGRAPHIC_TRIGGERS)


def enhance_prompt(prompt: str) -> str:
    """
    Prefix the style directive to infographic prompts.

    Args:
        prompt: Trimmed, user-authored prompt

    Returns:
        The prompt to dispatch. Non-infographic prompts are returned as-is.
    """
    if is_infographic_prompt(prompt):
        return f"{INFOGRAPHIC_STYLE_DIRECTIVE}{prompt}"
    return prompt


def prepare_prompt(draft: str) -> PreparedPrompt:
    """Trim a draft and compute the dispatched variant."""
    original = draft.strip()
    return PreparedPrompt(original=original, dispatched=enhance_prompt(original))
