"""
Style rules for container groups.

Rules are recomputed from container metadata whenever they are needed; the
presentation layer owns applying and removing them.
"""

import random
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel

from .config import config
from .models import Container


EMOJI_RANGES = [
    (0x1F600, 0x1F64F),  # Emoticons
    (0x1F300, 0x1F5FF),  # Misc symbols and pictographs
    (0x1F680, 0x1F6FF),  # Transport and map symbols
    (0x1F900, 0x1F9FF),  # Supplemental symbols and pictographs
]

THEME_OPACITY: Dict[str, Dict[str, float]] = {
    "light": {"base": 0.1, "gradient": 0.15, "hover": 0.2, "hover_gradient": 0.25},
    "dark": {"base": 0.15, "gradient": 0.2, "hover": 0.25, "hover_gradient": 0.3},
}


class ColorInfo(BaseModel):
    """HSL colour of a container with its light and dark theme variants."""

    hue: int
    saturation: int
    lightness: int
    light_color: str
    dark_color: str

    def to_frontmatter(self) -> Dict[str, object]:
        return {
            "moc-hue": self.hue,
            "moc-saturation": self.saturation,
            "moc-lightness": self.lightness,
            "light-color": self.light_color,
            "dark-color": self.dark_color,
        }


class StyleRule(BaseModel):
    """One theme-specific rule for a container's storage group."""

    group_path: str
    theme: str
    selector: str
    color: str

    def render(self) -> str:
        opacity = THEME_OPACITY[self.theme]
        return "\n".join([
            f"/* {self.group_path} - {self.theme} theme */",
            f"{self.selector} {{",
            "    background: linear-gradient(135deg, "
            f"{adjust_color_opacity(self.color, opacity['base'])} 0%, "
            f"{adjust_color_opacity(self.color, opacity['gradient'])} 100%) !important;",
            f"    border-left: 3px solid {self.color} !important;",
            "}",
            f"{self.selector}:hover {{",
            "    background: linear-gradient(135deg, "
            f"{adjust_color_opacity(self.color, opacity['hover'])} 0%, "
            f"{adjust_color_opacity(self.color, opacity['hover_gradient'])} 100%) !important;",
            "}",
            f"{self.selector} .nav-folder-collapse-indicator {{ color: {self.color} !important; }}",
        ])


def get_random_emoji(rng: Optional[random.Random] = None) -> str:
    """Pick a random emoji from the configured Unicode ranges."""
    rng = rng or random.Random()
    low, high = rng.choice(EMOJI_RANGES)
    return chr(rng.randint(low, high))


def generate_random_color(rng: Optional[random.Random] = None) -> ColorInfo:
    """Generate a container colour that stays readable in both themes."""
    rng = rng or random.Random()
    saturation_range = config.get("styles.saturation_range", [60, 90])
    lightness_range = config.get("styles.lightness_range", [45, 65])
    dark_boost = config.get("styles.dark_boost", 10)

    hue = rng.randrange(360)
    saturation = rng.randrange(saturation_range[0], saturation_range[1])
    lightness = rng.randrange(lightness_range[0], lightness_range[1])
    dark_lightness = min(lightness + dark_boost, 75)

    return ColorInfo(
        hue=hue,
        saturation=saturation,
        lightness=lightness,
        light_color=f"hsl({hue}, {saturation}%, {lightness}%)",
        dark_color=f"hsl({hue}, {saturation}%, {dark_lightness}%)"
    )


def adjust_color_opacity(hsl_color: str, opacity: float) -> str:
    """Turn 'hsl(h, s%, l%)' into 'hsla(h, s%, l%, opacity)'."""
    clamped = max(0.0, min(1.0, opacity))
    return hsl_color.replace("hsl(", "hsla(", 1).replace(")", f", {clamped})", 1)


def escape_for_css(path: str) -> str:
    return "".join("\\" + char if char in "'\"\\" else char for char in path)


def compute_style_rules(containers: Sequence[Container]) -> List[StyleRule]:
    """
    Build light and dark rules for every container that carries colours.

    Containers without both colours, or without a storage group, get no rule.
    """
    rules: List[StyleRule] = []
    for container in containers:
        light = container.attributes.light_color
        dark = container.attributes.dark_color
        if not (light and dark and container.group_path):
            continue
        escaped = escape_for_css(container.group_path)
        selector = f'.nav-folder-title[data-path="{escaped}"]'
        rules.append(StyleRule(group_path=container.group_path, theme="light",
                               selector=selector, color=light))
        rules.append(StyleRule(group_path=container.group_path, theme="dark",
                               selector=f".theme-dark {selector}", color=dark))
    return rules


def render_css(rules: Sequence[StyleRule]) -> str:
    """Render rules as a single stylesheet."""
    return "\n\n".join(rule.render() for rule in rules)
