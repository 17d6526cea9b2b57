"""Render extracted design specifications as a markdown document of CSS variables."""

from typing import List

from .extractor import DesignSpecs, NodeDescription
from .utils import format_scale, to_kebab_case

TEXT_PREVIEW_LENGTH = 80
WRAPPER_NODE_TYPES = ('DOCUMENT', 'CANVAS')


def _px(value: float) -> str:
    return f"{value:.0f}px"


def _color_block(lines: List[str], title: str, prefix: str, colors):
    if not colors:
        return
    lines.append(f"/* {title} */")
    for name, color in colors.items():
        lines.append(f"--{prefix}{to_kebab_case(name)}: {color};")
    lines.append("")


def sanitize_line_terminators(text: str) -> str:
    """Replace the Unicode line and paragraph separators Figma text may carry with newlines"""
    return text.replace('\u2028', '\n').replace('\u2029', '\n')


def to_markdown(specs: DesignSpecs, file_name: str, image_dir: str = "") -> str:
    """Build the full design specification document"""
    asset_dir = f"{image_dir}/" if image_dir else ""
    lines = [
        f"# Figma Design Specifications - {file_name}",
        "",
        "This document contains the complete design specifications extracted from the Figma file.",
        "",
    ]

    screenshot = next((asset for asset in specs.exported_assets if asset.is_screenshot), None)
    if screenshot:
        lines += [
            "## Complete Design Screenshot",
            "",
            f"![Complete Design Screenshot]({asset_dir}{screenshot.file_name})",
            "",
        ]

    # Colors
    colors = specs.colors
    lines += ["## Design System", "", "### Color Palette", "", "```css"]
    _color_block(lines, "Primary Colors", "color-primary-", colors.primary)
    _color_block(lines, "Secondary Colors", "color-secondary-", colors.secondary)
    _color_block(lines, "Background Colors", "color-bg-", colors.background)
    _color_block(lines, "Text Colors", "color-text-", colors.text)
    _color_block(lines, "Status Colors", "color-", colors.status)
    _color_block(lines, "Border Colors", "color-border-", colors.border)
    lines += ["```", ""]

    # Typography
    typography = specs.typography
    lines += ["### Typography", "", "```css"]
    if typography.font_family:
        lines += [
            "/* Font Family */",
            f"--font-primary: '{typography.font_family}', system-ui, -apple-system, sans-serif;",
            "",
        ]
    if typography.font_sizes:
        lines.append("/* Font Sizes */")
        lines += [f"--text-{name}: {_px(size)};" for name, size in typography.font_sizes.items()]
        lines.append("")
    if typography.font_weights:
        lines.append("/* Font Weights */")
        lines += [f"--font-{to_kebab_case(name)}: {weight:.0f};" for name, weight in typography.font_weights.items()]
        lines.append("")
    if typography.line_heights:
        lines.append("/* Line Heights */")
        lines += [f"--leading-{to_kebab_case(name)}: {_px(height)};" for name, height in typography.line_heights.items()]
        lines.append("")
    lines += ["```", ""]

    if specs.spacing:
        lines += ["### Spacing", "", "```css", "/* Spacing Scale */"]
        lines += [f"--space-{name}: {_px(value)};" for name, value in specs.spacing.items()]
        lines += ["```", ""]

    if specs.radii:
        lines += ["### Border Radius", "", "```css"]
        lines += [f"--radius-{name}: {_px(radius)};" for name, radius in specs.radii.items()]
        lines += ["--radius-full: 9999px; /* Full radius (circles) */", "```", ""]

    if specs.shadows:
        lines += ["### Shadows", "", "```css"]
        for i, shadow in enumerate(specs.shadows, 1):
            shadow_name = to_kebab_case(shadow.name) or f"shadow-{i}"
            value = f"{_px(shadow.x)} {_px(shadow.y)} {_px(shadow.blur)}"
            if shadow.spread > 0:
                value += f" {_px(shadow.spread)}"
            lines.append(f"--shadow-{shadow_name}: {value} {shadow.color};")
        lines += ["```", ""]

    # Layout
    layout = specs.layout
    lines += ["## Layout Specifications", "", "### Main Layout", ""]
    if layout.header_height > 0:
        lines.append(f"- **Header Height**: {_px(layout.header_height)}")
    if layout.sidebar_width > 0:
        lines.append(f"- **Sidebar Width**: {_px(layout.sidebar_width)}")
    if layout.content_padding > 0:
        lines.append(f"- **Content Padding**: {_px(layout.content_padding)}")
    lines.append("")

    # Screenshots are already embedded at the top
    assets = [asset for asset in specs.exported_assets if not asset.is_screenshot]
    if assets:
        lines += ["## Exported Assets", "", "| Asset | File | Format | Scale |", "|-------|------|--------|-------|"]
        for asset in assets:
            name = asset.node_name or asset.file_name
            lines.append(
                f"| {name} | `{asset_dir}{asset.file_name}` | {asset.format.upper()} | {format_scale(asset.scale)}x |"
            )
        lines.append("")

    if specs.node_tree:
        lines += [
            "## Component Tree",
            "",
            "Hierarchical node descriptions. Each indented line is a child.",
            "Format: `[TYPE] Name WxH | property:value ...`",
            "",
            "```",
        ]
        for root in specs.node_tree:
            render_node_description(lines, root, 0, asset_dir)
        lines += ["```", ""]

    return sanitize_line_terminators("\n".join(lines) + "\n")


def _describe(node: NodeDescription, asset_dir: str) -> List[str]:
    parts = []

    if node.width > 0 or node.height > 0:
        parts.append(f"{node.width:.0f}x{node.height:.0f}")
    if node.fill_colors:
        parts.append("fill:" + ",".join(node.fill_colors))
    if node.image_fills:
        parts.append("img:" + ",".join(node.image_fills))
    if node.stroke_colors:
        stroke = "stroke:" + ",".join(node.stroke_colors)
        if node.stroke_weight > 0:
            stroke += f" {_px(node.stroke_weight)}"
        parts.append(stroke)
    if node.corner_radius > 0:
        parts.append(f"radius:{node.corner_radius:.0f}")

    if node.text_content:
        text = node.text_content
        if len(text) > TEXT_PREVIEW_LENGTH:
            text = text[:TEXT_PREVIEW_LENGTH] + "..."
        text = text.replace("\n", " ")
        parts.append(f'"{text}"')

    if node.font_family:
        font = "font:" + node.font_family
        if node.font_size > 0:
            font += f"/{_px(node.font_size)}"
        if node.font_weight > 0:
            font += f"/w{node.font_weight:.0f}"
        parts.append(font)
    if node.text_align_horizontal:
        parts.append("align:" + node.text_align_horizontal)

    if node.layout_mode:
        parts.append("layout:" + node.layout_mode)
    if any(p > 0 for p in (node.padding_top, node.padding_right, node.padding_bottom, node.padding_left)):
        parts.append(
            f"pad:{node.padding_top:.0f},{node.padding_right:.0f},"
            f"{node.padding_bottom:.0f},{node.padding_left:.0f}"
        )
    if node.item_spacing > 0:
        parts.append(f"gap:{node.item_spacing:.0f}")

    for shadow in node.shadows:
        parts.append(f"shadow:{shadow.type}/{shadow.x:.0f},{shadow.y:.0f},{shadow.blur:.0f}/{shadow.color}")

    for asset in node.exported_assets:
        parts.append(f"asset:{asset_dir}{asset.file_name}")

    return parts


def render_node_description(lines: List[str], node: NodeDescription, depth: int, asset_dir: str = ""):
    """Append one line per node, children indented by two spaces; DOCUMENT and CANVAS wrappers are skipped"""
    if node.type in WRAPPER_NODE_TYPES:
        for child in node.children:
            render_node_description(lines, child, depth, asset_dir)
        return

    line = f"{'  ' * depth}[{node.type}] {node.name}"
    parts = _describe(node, asset_dir)
    if parts:
        line += " | " + " | ".join(parts)
    lines.append(line)

    for child in node.children:
        render_node_description(lines, child, depth + 1, asset_dir)
