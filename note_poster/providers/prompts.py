# note_poster/providers/prompts.py
"""
Prompt templates shared by the prompt and image clients.

Kept in one module so the wording can be tuned without touching client code.
"""

MAX_NOTE_CHARS = 30_000

PROMPT_SYSTEM = (
    "You are an expert visual designer who turns study notes into knowledge posters. "
    "Read the note and write ONE image-generation prompt for a single poster that "
    "explains its key ideas visually.\n\n"
    "Requirements:\n"
    "- Identify the main topic and the 3-7 most important concepts\n"
    "- Describe the layout, visual hierarchy, icons and colour palette\n"
    "- Include short headings and labels that should appear as text in the image\n"
    "- Keep it factual; do not invent content that is not in the note\n\n"
    "Respond with the prompt text only. No preamble, no markdown fences."
)

STYLE_INSTRUCTIONS: dict[str, str] = {
    "infographic": (
        "Style: clean infographic with charts, icons and a clear visual hierarchy. "
        "Sections flow top to bottom with bold headings."
    ),
    "poster": (
        "Style: bold educational poster with striking typography and a central "
        "illustration. High contrast, minimal clutter."
    ),
    "diagram": (
        "Style: technical diagram with labelled boxes, arrows and connectors showing "
        "how the components relate. Flat colours on a light background."
    ),
    "mindmap": (
        "Style: mind map with the central concept in the middle and branches radiating "
        "outward to sub-topics, each branch colour-coded."
    ),
    "timeline": (
        "Style: horizontal timeline showing progression and milestones in order, "
        "with dates or step numbers and short captions."
    ),
    "cartoon": (
        "Style: comic strip that tells the content as a short story with friendly "
        "characters and speech bubbles."
    ),
}

# Grid layout per panel count (rows x columns)
_PANEL_GRIDS: dict[int, str] = {
    2: "1x2",
    3: "1x3",
    4: "2x2",
    6: "2x3",
    8: "2x4",
    9: "3x3",
    10: "2x5",
    12: "3x4",
}

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ko": "Korean",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
}


def build_prompt_messages(note_text: str) -> list[dict]:
    """Build chat messages asking for an image prompt for ``note_text``."""
    if len(note_text) > MAX_NOTE_CHARS:
        note_text = note_text[:MAX_NOTE_CHARS]
    return [
        {"role": "system", "content": PROMPT_SYSTEM},
        {"role": "user", "content": f"Note:\n\n{note_text}"},
    ]


def panel_layout(panel_count: int) -> str:
    """Describe the grid for ``panel_count`` comic panels."""
    grid = _PANEL_GRIDS.get(panel_count)
    if grid:
        return f"{panel_count} panels arranged in a {grid} grid"
    return f"{panel_count} panels arranged in an even grid"


def build_image_prompt(
    prompt: str,
    style: str,
    language: str,
    panel_count: int | None = None,
) -> str:
    """
    Combine the generated prompt with style and language instructions.

    Cartoon style additionally pins the panel count and grid layout.
    """
    parts = [prompt.strip(), STYLE_INSTRUCTIONS.get(style, STYLE_INSTRUCTIONS["infographic"])]

    if style == "cartoon" and panel_count:
        parts.append(
            f"Layout: exactly {panel_layout(panel_count)}, read left to right, top to bottom. "
            "Each panel has a clear border."
        )

    language_name = LANGUAGE_NAMES.get(language, "English")
    parts.append(
        f"All text in the image must be written in {language_name}, "
        "legible and spelled correctly."
    )
    return "\n\n".join(parts)
