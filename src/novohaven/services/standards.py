"""Company standard catalogue, matching and formatting.

Prompt variables such as ``{{brand_voice}}`` are resolved against the
user's saved company standards. The catalogue below enumerates which
variable names refer to standards, the standard type each one targets,
and the keywords used to pick the best standard of that type.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from src.novohaven.models import CompanyStandard, StandardType


@dataclass(frozen=True)
class StandardVariable:
    """A variable name that resolves to a company standard."""

    name: str
    standard_type: StandardType
    keywords: tuple[str, ...]


STANDARD_VARIABLES: tuple[StandardVariable, ...] = (
    StandardVariable("brand_voice", StandardType.VOICE, ("voice", "brand", "tone")),
    StandardVariable("amazon_requirements", StandardType.PLATFORM, ("amazon",)),
    StandardVariable(
        "social_media_guidelines",
        StandardType.PLATFORM,
        ("social", "media", "instagram", "tiktok", "facebook"),
    ),
    StandardVariable("image_style_guidelines", StandardType.IMAGE, ("image", "photo", "style")),
    StandardVariable("platform_requirements", StandardType.PLATFORM, ("platform",)),
    StandardVariable("tone_guidelines", StandardType.VOICE, ("tone", "voice")),
    StandardVariable("content_guidelines", StandardType.VOICE, ("content", "guideline")),
    StandardVariable("company_voice", StandardType.VOICE, ("voice", "brand", "tone")),
    StandardVariable("company_platform", StandardType.PLATFORM, ("platform",)),
    StandardVariable("company_image", StandardType.IMAGE, ("image", "photo", "style")),
)

_BY_NAME = {v.name: v for v in STANDARD_VARIABLES}

# Resolves (variable, standards) to the standard to inject, or None
StandardResolver: TypeAlias = Callable[
    [StandardVariable, Sequence[CompanyStandard]], CompanyStandard | None
]


def _normalize(name: str) -> str:
    return name.lower().replace("_", "")


def match_standard_variable(name: str) -> StandardVariable | None:
    """Return the catalogue entry a variable name refers to, if any.

    Matching ignores case and underscores; a name containing a catalogue
    name also matches, so ``BrandVoice`` and ``my_brand_voice`` both map
    to ``brand_voice``.
    """
    exact = _BY_NAME.get(name)
    if exact is not None:
        return exact
    normalized = _normalize(name)
    for variable in STANDARD_VARIABLES:
        std = _normalize(variable.name)
        if std in normalized:
            return variable
    return None


def keyword_resolver(
    variable: StandardVariable, standards: Sequence[CompanyStandard]
) -> CompanyStandard | None:
    """Pick the first standard of the right type whose name has a keyword.

    Falls back to the first standard of that type.
    """
    candidates = [s for s in standards if s.standard_type == variable.standard_type.value]
    if not candidates:
        return None
    for standard in candidates:
        lowered = standard.name.lower()
        if any(keyword in lowered for keyword in variable.keywords):
            return standard
    return candidates[0]


def _bullets(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    return [f"- {item}" for item in items]


def _format_voice(content: dict[str, Any]) -> list[str]:
    lines = []
    if content.get("tone"):
        lines.append(f"Tone: {content['tone']}")
    if content.get("style"):
        lines.append(f"Style: {content['style']}")
    guidelines = _bullets(content.get("guidelines"))
    if guidelines:
        lines.append("Guidelines:")
        lines.extend(guidelines)
    return lines


def _format_platform(content: dict[str, Any]) -> list[str]:
    lines = []
    if content.get("platform"):
        lines.append(f"Platform: {content['platform']}")
    requirements = _bullets(content.get("requirements"))
    if requirements:
        lines.append("Requirements:")
        lines.extend(requirements)
    limits = content.get("characterLimits") or content.get("character_limits")
    if isinstance(limits, dict) and limits:
        lines.append("Character Limits:")
        lines.extend(f"- {key}: {value}" for key, value in limits.items())
    return lines


def _format_image(content: dict[str, Any]) -> list[str]:
    lines = []
    if content.get("style"):
        lines.append(f"Style: {content['style']}")
    if content.get("dimensions"):
        lines.append(f"Dimensions: {content['dimensions']}")
    guidelines = _bullets(content.get("guidelines"))
    if guidelines:
        lines.append("Guidelines:")
        lines.extend(guidelines)
    return lines


_FORMATTERS: dict[str, Callable[[dict[str, Any]], list[str]]] = {
    StandardType.VOICE.value: _format_voice,
    StandardType.PLATFORM.value: _format_platform,
    StandardType.IMAGE.value: _format_image,
}


def format_standard(standard: CompanyStandard) -> str:
    """Render a standard's content as prompt text.

    Raw-text content is returned unchanged.
    """
    content = standard.content
    if isinstance(content, str):
        return content
    formatter = _FORMATTERS.get(standard.standard_type)
    if formatter is None:
        return "\n".join(f"{key}: {value}" for key, value in content.items())
    return "\n".join(formatter(content))


def standard_placeholder(variable: StandardVariable) -> str:
    return f"[No {variable.standard_type.value} standards configured]"
