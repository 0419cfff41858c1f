"""Style catalog and prompt construction.

Each subject mode owns an ordered list of styles; each style owns one
immutable shot definition. Prompts are built by substituting the subject
name into the template, appending the mode's quality suffix and the
analyzer's visual description.
"""

from dataclasses import dataclass
from typing import Optional

from supashots.models.batch import SubjectDescriptor
from supashots.models.shot import Style, SubjectMode

SUBJECT_PLACEHOLDER = "[PRODUCT]"

PRODUCT_QUALITY_SUFFIX = """
CRITICAL REQUIREMENTS:
- Product must be accurate in shape, proportions, color, label and branding.
- No distortion, deformation or redesign of the product.
- Professional studio lighting, editorial advertising aesthetic, 4K look.
"""

HUMAN_QUALITY_SUFFIX = """
CRITICAL REQUIREMENTS:
- Subject must be accurate in facial features, expression and likeness.
- No distortion of anatomy, face or hands; natural skin texture.
- Professional portrait lighting, editorial fashion aesthetic, 4K look.
"""


@dataclass(frozen=True)
class ShotDefinition:
    """Immutable description of one shot style."""

    style: Style
    label: str
    description: str
    emotional: str
    prompt_template: str


PRODUCT_STYLES: tuple[Style, ...] = (
    Style.HERO,
    Style.MACRO,
    Style.LIQUID,
    Style.SCULPTURAL,
    Style.FLOATING,
    Style.SENSORY,
    Style.COLOR,
    Style.INGREDIENT,
    Style.SURREAL,
)

HUMAN_STYLES: tuple[Style, ...] = (
    Style.MCU,
    Style.MS,
    Style.OS,
    Style.WS,
    Style.HA,
    Style.LA,
    Style.P,
    Style.THREE_Q,
    Style.B,
)

_DEFINITIONS: dict[Style, ShotDefinition] = {
    definition.style: definition
    for definition in (
        # Product mode
        ShotDefinition(
            Style.HERO,
            "Iconic Hero",
            "Definitive showcase with bold composition and commanding presence.",
            "Authority, Desire, Aspiration",
            "Create an iconic hero shot of the same [PRODUCT] with bold, striking composition. "
            "Position it as the clear hero with commanding presence and dramatic lighting.",
        ),
        ShotDefinition(
            Style.MACRO,
            "Extreme Macro",
            "High-magnification detail shot emphasizing texture and craftsmanship.",
            "Intimacy, Precision, Quality",
            "Create an extreme macro close-up of the same [PRODUCT] highlighting texture, "
            "finish and fine details with an ultra-shallow depth of field.",
        ),
        ShotDefinition(
            Style.LIQUID,
            "Dynamic Energy",
            "High-speed capture with liquid splashes or particle interactions.",
            "Energy, Freshness, Motion",
            "Create a dynamic shot of the same [PRODUCT] with a liquid splash, pour or "
            "particle interaction frozen at high speed around it.",
        ),
        ShotDefinition(
            Style.SCULPTURAL,
            "Sculptural Minimal",
            "Geometric arrangement with abstract forms and strong shadows.",
            "Balance, Modernity, Art",
            "Create a minimal sculptural arrangement of the same [PRODUCT] among abstract "
            "geometric forms with strong, clean shadows.",
        ),
        ShotDefinition(
            Style.FLOATING,
            "Anti-Gravity",
            "Levitating composition suggesting lightness and innovation.",
            "Innovation, Future, Uplift",
            "Create a weightless composition of the same [PRODUCT] levitating in mid-air, "
            "suggesting innovation and lightness.",
        ),
        ShotDefinition(
            Style.SENSORY,
            "Sensory Tactile",
            "Intimate framing emphasizing material authenticity and touch.",
            "Connection, Warmth, Tactility",
            "Create an intimate close-up of the same [PRODUCT] emphasizing tactility and "
            "material authenticity.",
        ),
        ShotDefinition(
            Style.COLOR,
            "Color Concept",
            "Scene built entirely around the subject's color palette.",
            "Harmony, Identity, Mood",
            "Create a color-driven conceptual scene of the same [PRODUCT] built entirely "
            "around its own color palette.",
        ),
        ShotDefinition(
            Style.INGREDIENT,
            "Component Story",
            "Symbolic arrangement of ingredients or materials.",
            "Integrity, Nature, Source",
            "Create a composition of the same [PRODUCT] surrounded by a symbolic arrangement "
            "of its key ingredients, materials or components.",
        ),
        ShotDefinition(
            Style.SURREAL,
            "Surreal Fusion",
            "Dream-like fusion of realism and imagination.",
            "Wonder, Magic, Uniqueness",
            "Create a surreal yet elegant scene featuring the same [PRODUCT] blended with "
            "imaginative, dream-like elements.",
        ),
        # Human mode
        ShotDefinition(
            Style.MCU,
            "Macro Close Up",
            "Extreme facial detail, eye focus, expression capture",
            "Intimacy, Vulnerability, Detail",
            "Create a macro close-up of the same person with sharp focus on facial features "
            "and a minimal background.",
        ),
        ShotDefinition(
            Style.MS,
            "Medium Shot",
            "Professional portrait standard, waist-up framing",
            "Professional, Approachable, Confident",
            "Create a waist-up medium shot of the same person with a warm key light and a "
            "neutral background.",
        ),
        ShotDefinition(
            Style.OS,
            "Over the Shoulder",
            "Intimate perspective, relationship focus, 45-degree angle",
            "Intimate, Engaging, Relatable",
            "Create an over-the-shoulder shot at about 45 degrees with the same person's "
            "face visible past a foreground shoulder.",
        ),
        ShotDefinition(
            Style.WS,
            "Wide Shot",
            "Full-body with environment, storytelling composition",
            "Contextual, Environmental, Storytelling",
            "Create a full-body wide shot of the same person with the surrounding "
            "environment contributing to the composition.",
        ),
        ShotDefinition(
            Style.HA,
            "High Angle",
            "From above looking down, vulnerable mood, contemplative",
            "Vulnerable, Introspective, Humble",
            "Create a high-angle shot looking down at the same person from 45-60 degrees "
            "with a contemplative mood.",
        ),
        ShotDefinition(
            Style.LA,
            "Low Angle",
            "From below looking up, powerful/heroic mood, confident",
            "Powerful, Heroic, Dominant",
            "Create a low-angle shot looking up at the same person, confident and "
            "commanding.",
        ),
        ShotDefinition(
            Style.P,
            "Profile View",
            "Pure 90-degree side view, classical silhouette",
            "Classical, Defined, Structured",
            "Create a pure 90-degree profile view of the same person in a clean, "
            "well-defined silhouette.",
        ),
        ShotDefinition(
            Style.THREE_Q,
            "Three-Quarter View",
            "Most popular angle, natural dimensional perspective",
            "Natural, Dimensional, Personable",
            "Create a three-quarter view of the same person turned 45 degrees with both "
            "eyes visible.",
        ),
        ShotDefinition(
            Style.B,
            "Back View",
            "Back view, hair detail, movement, story",
            "Mystery, Intrigue, Motion",
            "Create a back view of the same person showing posture, shoulders and hair "
            "with environmental context.",
        ),
    )
}


def styles_for(mode: SubjectMode) -> tuple[Style, ...]:
    """Return the ordered catalog for a subject mode."""
    return HUMAN_STYLES if mode == SubjectMode.HUMAN else PRODUCT_STYLES


def get_shot_definition(style: Style) -> ShotDefinition:
    """Return the style's definition with its mode's quality suffix appended.

    The suffix is chosen by the catalog the style belongs to, not by the
    currently selected mode.
    """
    definition = _DEFINITIONS[style]
    suffix = HUMAN_QUALITY_SUFFIX if style in HUMAN_STYLES else PRODUCT_QUALITY_SUFFIX
    return ShotDefinition(
        style=definition.style,
        label=definition.label,
        description=definition.description,
        emotional=definition.emotional,
        prompt_template=definition.prompt_template + suffix,
    )


def build_prompt(
    definition: ShotDefinition,
    subject: SubjectDescriptor,
    custom_instruction: Optional[str] = None,
) -> str:
    """Build the generation prompt for a batch task.

    Args:
        definition: Shot definition (template already carries the quality suffix)
        subject: Analyzer descriptor of the source image
        custom_instruction: Optional text appended as an extra directive

    Returns:
        Full prompt text
    """
    template = definition.prompt_template.replace(SUBJECT_PLACEHOLDER, subject.name)
    prompt = (
        f"{template}\n"
        f"SUBJECT VISUAL DETAILS: {subject.description}.\n"
        "Ensure the subject matches these visual details exactly. "
        "High resolution, photorealistic."
    )
    if custom_instruction:
        prompt += f"\nADDITIONAL DIRECTION: {custom_instruction}"
    return prompt


def build_edit_prompt(
    definition: ShotDefinition, subject: SubjectDescriptor, edit_request: str
) -> str:
    """Resolve a user's edit request into the full instruction sent for an edit."""
    template = definition.prompt_template.replace(SUBJECT_PLACEHOLDER, subject.name)
    return (
        f"{template}\n"
        f"SUBJECT DETAILS: {subject.description}\n"
        f"MODIFICATION REQUEST: {edit_request}\n"
        "Apply this modification strictly while maintaining photorealism."
    )
