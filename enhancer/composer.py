"""
Prompt Composer — turn detection + selected styles into the final edit prompt.

`compose()` is pure and deterministic: same inputs, same prompt. The only
model-dependent piece, the "Human Element" interaction phrase, is fetched by
PromptComposer.build() beforehand and passed in.

Prompt shape:
  1. Task directive   — isolate-and-recompose, or restyle-in-place
  2. Aesthetic bullets — style / lighting / composition / mood instructions
  3. Framing line     — target aspect ratio
  4. Closing rule     — no new text, logos or watermarks
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .cancellation import CancellationToken
from .classifier import FALLBACK_BACKGROUND
from .errors import GenerationCancelled
from .executor import ExecutionStrategy
from .models import AspectRatio, DetectionResult
from .styles import (
    CLEAN_CATALOG,
    GHOST_MANNEQUIN,
    HUMAN_ELEMENT,
    STYLE_ENHANCEMENTS,
    StyleCategory,
    StyleSelection,
    describe,
)
from .transport import ModelRequest, TextPart

logger = logging.getLogger(__name__)


STUDIO_BACKGROUND = (
    "a clean, professional studio shot with a plain, solid light grey or white background "
    "and even, soft lighting."
)

CLOSING_RULE = (
    "ABSOLUTE RULE: Do not generate any new text, words, letters, logos, or watermarks. "
    "Preserve any text that is part of the original subject, but do not add any extra text elements to the image."
)

FRAMING = {
    AspectRatio.SQUARE: "Frame the final image as a balanced square (1:1) composition.",
    AspectRatio.PORTRAIT: "Frame the final image as a vertical 4:5 composition suited to social feeds.",
    AspectRatio.LANDSCAPE: "Frame the final image as a wide 16:9 landscape composition.",
    AspectRatio.STORY: "Frame the final image as a tall 9:16 vertical composition suited to stories.",
}

APPAREL_KEYWORDS = (
    "baju", "kemeja", "gaun", "jaket", "celana", "rok", "pakaian",
    "shirt", "dress", "jacket", "pants", "skirt", "clothing", "apparel",
)

INTERACTION_SYSTEM_INSTRUCTION = """You are an expert in product photography and cultural anthropology. Your task is to describe a natural, context-aware, and culturally appropriate human interaction with a given subject. The output must be a concise phrase suitable for an image generation prompt.

Follow these rules:
1.  **Analyze the Subject:** First, identify the object and its primary use.
2.  **Determine the Interaction:**
    *   **For Food:** Consider the food type and cultural context to choose the correct utensil.
        *   **Rice/Grain Dishes (like Nasi Goreng, Risotto):** The primary utensil is a spoon. Phrase: "a hand holding a spoon, scooping a perfect bite."
        *   **Noodle Dishes (like Mie Ayam, Ramen, Pasta):** Can be chopsticks or a fork. If it's a soupy noodle dish, a spoon can also be present for the broth. Phrase: "a hand lifting noodles with chopsticks" or "a hand twirling pasta with a fork."
        *   **Soups (Sop):** The only appropriate utensil is a soup spoon. Phrase: "a hand holding a spoon, lifting it from a bowl of soup."
        *   **Western dishes (like Steak):** Knife and fork. Phrase: "hands cutting a piece of steak with a knife and fork."
        *   **Hand-held food (like Burgers, Tacos):** Hands are the primary tool. Phrase: "hands holding a burger, about to take a bite."
    *   **For Drinks (like Coffee, Tea):** A hand holding the cup/mug/glass appropriately (e.g., by the handle for a hot mug). Phrase: "a hand holding a ceramic coffee mug."
    *   **For Technology (like a Smartphone, Laptop):** A hand interacting with the device. Phrase: "a hand holding a smartphone, a finger scrolling the screen" or "hands typing on a laptop keyboard."
    *   **For Apparel/Accessories (like a Watch, Jacket):** A human wearing or interacting with the item. Phrase: "a hand fastening a leather strap watch on a wrist" or "a hand touching the fabric of a denim jacket."
    *   **For Tools (like a Hammer, Screwdriver):** A hand gripping and using the tool for its intended purpose. Phrase: "a hand gripping a hammer, poised to strike."
    *   **For Cosmetics (like Lipstick, Cream Jar):** A hand using the product. Phrase: "fingers scooping a small amount of cream from a jar."
3.  **Be Concise:** The final output must be a short, descriptive phrase. Do not add any introductory text like 'Here is the phrase:'. Just provide the phrase itself.
4.  **Focus on the Action:** The phrase should describe a subtle, elegant action, not a full scene. The human element should complement the product, not dominate it.

Example Input: 'Secangkir Kopi'
Example Output: 'a hand holding the handle of a warm ceramic coffee mug.'

Example Input: 'Jam Tangan Kulit'
Example Output: 'a hand fastening the buckle of a leather watch on a wrist.'
"""


def is_apparel(subject: Optional[str]) -> bool:
    lowered = (subject or "").lower()
    return any(k in lowered for k in APPAREL_KEYWORDS)


def _bullets(clauses: List[str]) -> str:
    return "\n".join(f"- {c}" for c in clauses)


def aesthetic_clauses(
    detection: DetectionResult,
    selected: StyleSelection,
    interaction_phrase: Optional[str] = None,
) -> List[str]:
    """Resolve each axis to its instruction sentence, in style/lighting/composition/mood order."""
    style_choice = selected.style or detection.suggested_style

    composition = describe(StyleCategory.COMPOSITION, selected.composition)
    if selected.composition == HUMAN_ELEMENT and interaction_phrase:
        composition = interaction_phrase
    elif composition is None and style_choice == "Splash":
        composition = STYLE_ENHANCEMENTS["Splash"]

    clauses = [
        describe(StyleCategory.STYLE, style_choice),
        describe(StyleCategory.LIGHTING, selected.lighting),
        composition,
        describe(StyleCategory.MOOD, selected.mood),
    ]
    return [c for c in clauses if c]


def resolve_background(detection: DetectionResult, selected: StyleSelection, isolate_subject: bool) -> str:
    if isolate_subject or selected.style == CLEAN_CATALOG:
        return STUDIO_BACKGROUND
    return detection.background_prompt or FALLBACK_BACKGROUND


def compose(
    detection: Optional[DetectionResult],
    selected: StyleSelection,
    aspect_ratio: AspectRatio,
    isolate_subject: bool,
    interaction_phrase: Optional[str] = None,
) -> str:
    """Build the final image-edit prompt. Pure; no model calls."""
    detection = detection or DetectionResult()
    clauses = aesthetic_clauses(detection, selected, interaction_phrase)
    background = resolve_background(detection, selected, isolate_subject)

    sections: List[str] = []
    if isolate_subject:
        who = f"the main subject, a '{detection.subject}'," if detection.subject else "the main subject"
        directive = (
            f"CRITICAL TASK: Perfectly isolate {who} from everything else. "
            f"Reconstruct any obscured parts. Place it onto a new background: '{background}'"
        )
        if is_apparel(detection.subject):
            directive += f"\nSPECIAL INSTRUCTION: {STYLE_ENHANCEMENTS[GHOST_MANNEQUIN]}"
        sections.append(directive)
        if clauses:
            sections.append("Apply these professional aesthetic principles:\n" + _bullets(clauses))
        sections.append("Must be hyper-realistic.")
    else:
        sections.append(
            "Task: Transform this image into a professional, hyper-realistic photograph. "
            f"The main subject must be perfectly integrated into a new background described as: '{background}'"
        )
        if clauses:
            sections.append("Apply the following professional photographic principles:\n" + _bullets(clauses))

    sections.append(FRAMING[AspectRatio(aspect_ratio)])
    sections.append(CLOSING_RULE)
    return "\n\n".join(sections)


class PromptComposer:
    """Wraps compose() with the Human Element sub-call and a per-subject phrase cache."""

    def __init__(self, vision_model: str) -> None:
        self.vision_model = vision_model
        self._phrases: Dict[str, str] = {}

    def clear_cache(self) -> None:
        self._phrases.clear()

    async def interaction_phrase(self, subject: str, strategy: ExecutionStrategy,
                                 token: CancellationToken) -> Optional[str]:
        """Ask the text model for a culturally appropriate hand/subject interaction.

        Returns None on failure so the caller falls back to the library sentence.
        """
        cache_key = subject.strip().lower()
        if cache_key in self._phrases:
            return self._phrases[cache_key]

        request = ModelRequest(
            model=self.vision_model,
            parts=(TextPart(
                f'Describe a natural, culturally appropriate human interaction with "{subject.strip()}" '
                "in a concise phrase."
            ),),
            system_instruction=INTERACTION_SYSTEM_INSTRUCTION,
        )
        try:
            reply = await strategy.send(request, token)
        except GenerationCancelled:
            raise
        except Exception as e:
            logger.warning("interaction phrase for %r failed, using library instruction: %s", subject, e)
            return None

        phrase = reply.text.strip().strip("'\"").strip()
        if not phrase:
            return None
        self._phrases[cache_key] = phrase
        return phrase

    async def build(
        self,
        detection: Optional[DetectionResult],
        selected: StyleSelection,
        aspect_ratio: AspectRatio,
        isolate_subject: bool,
        strategy: ExecutionStrategy,
        token: CancellationToken,
    ) -> str:
        phrase = None
        if selected.composition == HUMAN_ELEMENT and detection is not None and detection.subject:
            phrase = await self.interaction_phrase(detection.subject, strategy, token)
        return compose(detection, selected, aspect_ratio, isolate_subject, phrase)
