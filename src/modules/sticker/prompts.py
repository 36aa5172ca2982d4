"""
Sticker Prompt Assembly

Builds the image prompt for a sticker from a message (the Japanese text drawn
into the artwork) and a keyword (the character theme). Single generations get
the full rule set plus a random camera angle; batch items get a lighter
prompt to keep batch jobs cheap.
"""

import random
import re
from typing import List, Optional

DEFAULT_MESSAGE = "PayPay銀行へ入金よろしく"
DEFAULT_THEME = "麦色の毛の猫"

_MOCHI_THEME = re.compile(r"餅|もち|mochi", re.IGNORECASE)

CAMERA_ANGLES = [
    "front view",
    "three-quarter view (left)",
    "three-quarter view (right)",
    "profile view (left)",
    "profile view (right)",
    "rear three-quarter view",
    "back view (the character turns head to look at the camera)",
    "top-down view (bird's-eye)",
    "low angle from below (worm's-eye)",
    "high angle from above",
    "from directly above",
    "from directly below",
]

STYLE_RULES = [
    "Generate a single LINE-style Japanese sticker illustration.",
    "Overall style: soft, cute, chibi-style character illustration.",
    "Do not make the illustration small and centered. Use the 370x320 canvas broadly and fill the available area.",
    "Make the character's reaction VERY exaggerated (big facial expression, bold eyebrows, sweat drops, motion lines).",
]

OPACITY_RULES = [
    "The character (body, face, clothes, accessories) must be painted with solid, fully opaque colors.",
    "Do NOT make the character translucent or see-through: no glass, jelly, ghost, watery, or low-opacity effects.",
    "Only the background is transparent. The area inside the outline must not be transparent.",
    "If you are unsure whether a pixel belongs to the sticker or the background, make it OPAQUE.",
    "Never use transparency for highlights, shading, glow, or sparkles; render all effects as opaque colors.",
]

COMPLIANCE_RULES = [
    "IMPORTANT: Do not depict, imitate, or reference any third-party copyrighted/trademarked characters, logos, brands, or recognizable IP.",
    "Do not include URLs, release announcements, or calls-to-action in the artwork text.",
    "Keep the sticker appropriate for general audiences: no nudity, no explicit violence, no self-harm, no illegal drugs, no hate or harassment.",
]

TEXT_RULES = [
    "CRITICAL: Render the Japanese message EXACTLY as provided, character-for-character.",
    "No typos, no missing characters, no extra characters, no substitutions, and no paraphrasing.",
    "Prioritize text correctness over decoration. If needed, reduce ornaments but keep the characters exact.",
    "Make the Japanese text very large, thick, and bold with a strong outline so it stays readable at small size.",
]

BACKING_RULES = [
    "Create a solid white sticker backing: fill the combined silhouette of the character and the text with pure, fully opaque white.",
    "Everything outside this white sticker backing must be fully transparent (alpha channel).",
    "Do not add any other background elements: no panels, shapes, gradients, or patterns.",
    "You may anti-alias only the outer edges; the interior must remain opaque.",
]

MOCHI_RULES = [
    "For a mochi (rice cake) character: render the body as pure opaque white, soft and slightly squishy.",
    "ABSOLUTE: Paint the mochi character with pure white (#FFFFFF) in fully opaque color (alpha=255). Never leave holes or see-through areas.",
    "No wrappers, plates, packaging, or toppings unless requested.",
]


def resolve_inputs(message: Optional[str], keyword: Optional[str]):
    """Trim inputs and substitute the defaults for blank values."""
    text = (message or "").strip() or DEFAULT_MESSAGE
    theme = (keyword or "").strip() or DEFAULT_THEME
    return text, theme


def is_mochi_theme(theme: str) -> bool:
    return bool(_MOCHI_THEME.search(theme))


def _theme_block(theme: str) -> List[str]:
    lines = [f'Character theme: "{theme}".']
    if is_mochi_theme(theme):
        lines.extend(MOCHI_RULES)
    return lines


def build_generate_prompt(
    message: Optional[str],
    keyword: Optional[str],
    rng: Optional[random.Random] = None
) -> str:
    """Full prompt for a single sticker with a random camera angle."""
    rng = rng or random.Random()
    text, theme = resolve_inputs(message, keyword)
    angle = rng.choice(CAMERA_ANGLES)

    rules = "\n".join(STYLE_RULES + OPACITY_RULES + COMPLIANCE_RULES + TEXT_RULES + BACKING_RULES)
    camera = "\n".join([
        "Camera angle is FREE 360° and random for each generation.",
        f"Random camera angle for this image: {angle}.",
        "Whatever the angle, the character's eyes must look directly at the camera.",
    ])
    variable = "\n".join(
        _theme_block(theme)
        + ["", f'Include the Japanese message "{text}" inside the illustration as part of the artwork.']
    )
    return "\n\n".join([rules, camera, variable])


def build_batch_prompt(message: Optional[str], keyword: Optional[str]) -> str:
    """Lighter prompt for batch items; keeps the exact-text constraint."""
    text, theme = resolve_inputs(message, keyword)
    lines = STYLE_RULES[:2] + [
        "Background must be transparent.",
        "Create a solid white sticker backing with a thin light-gray outline; everything outside the backing is fully transparent.",
        "The character and Japanese text must be fully opaque (alpha=255). No translucency, no see-through.",
        COMPLIANCE_RULES[0],
    ] + TEXT_RULES[:3] + [
        "",
    ] + _theme_block(theme) + [
        f'Include the Japanese message "{text}" inside the illustration as the ONLY text.',
        "Do not add any other text.",
    ]
    return "\n".join(lines)
