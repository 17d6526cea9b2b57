"""
Design token extraction.

Walks the Figma document tree (raw API JSON) and collects colors, typography,
spacing, shadows, border radii and layout measurements, then normalizes them
into named scales. Also builds the per-node description tree used by the
component tree section of the report.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import ExportedAsset

logger = logging.getLogger(__name__)

FONT_SIZE_NAMES = ['xs', 'sm', 'base', 'lg', 'xl', '2xl', '3xl', '4xl']
SPACING_NAMES = ['1', '2', '3', '4', '5', '6', '8', '10', '12', '16', '20', '24']
RADIUS_NAMES = ['sm', 'md', 'lg', 'xl', '2xl']
SHADOW_TYPES = ('DROP_SHADOW', 'INNER_SHADOW')


@dataclass
class ColorPalette:
    primary: Dict[str, str] = field(default_factory=dict)
    secondary: Dict[str, str] = field(default_factory=dict)
    background: Dict[str, str] = field(default_factory=dict)
    text: Dict[str, str] = field(default_factory=dict)
    status: Dict[str, str] = field(default_factory=dict)
    border: Dict[str, str] = field(default_factory=dict)


@dataclass
class Typography:
    font_family: str = ''
    font_sizes: Dict[str, float] = field(default_factory=dict)
    font_weights: Dict[str, float] = field(default_factory=dict)
    line_heights: Dict[str, float] = field(default_factory=dict)


@dataclass
class Shadow:
    name: str
    type: str
    x: float
    y: float
    blur: float
    spread: float
    color: str


@dataclass
class LayoutSpecs:
    header_height: float = 0
    sidebar_width: float = 0
    content_padding: float = 0


@dataclass
class NodeDescription:
    """Visual properties of one node, with its described children."""

    id: str
    name: str
    type: str
    width: float = 0
    height: float = 0
    fill_colors: List[str] = field(default_factory=list)
    image_fills: List[str] = field(default_factory=list)
    stroke_colors: List[str] = field(default_factory=list)
    stroke_weight: float = 0
    corner_radius: float = 0
    text_content: str = ''
    font_family: str = ''
    font_size: float = 0
    font_weight: float = 0
    line_height_px: float = 0
    text_align_horizontal: str = ''
    layout_mode: str = ''
    padding_top: float = 0
    padding_right: float = 0
    padding_bottom: float = 0
    padding_left: float = 0
    item_spacing: float = 0
    shadows: List[Shadow] = field(default_factory=list)
    exported_assets: List[ExportedAsset] = field(default_factory=list)
    children: List['NodeDescription'] = field(default_factory=list)


@dataclass
class DesignSpecs:
    colors: ColorPalette = field(default_factory=ColorPalette)
    typography: Typography = field(default_factory=Typography)
    spacing: Dict[str, float] = field(default_factory=dict)
    shadows: List[Shadow] = field(default_factory=list)
    radii: Dict[str, float] = field(default_factory=dict)
    layout: LayoutSpecs = field(default_factory=LayoutSpecs)
    exported_assets: List[ExportedAsset] = field(default_factory=list)
    node_tree: List[NodeDescription] = field(default_factory=list)


def color_to_hex(color: Optional[Dict]) -> str:
    """Convert a Figma 0-1 float RGBA color to #RRGGBB"""
    if not color:
        return "#000000"
    r = round(color.get('r', 0) * 255)
    g = round(color.get('g', 0) * 255)
    b = round(color.get('b', 0) * 255)
    return f"#{r:02X}{g:02X}{b:02X}"


def _is_visible(paint: Dict) -> bool:
    return paint.get('visible', True)


def _shadows_of(node: Dict) -> List[Shadow]:
    shadows = []
    for effect in node.get('effects') or []:
        if effect.get('type') in SHADOW_TYPES and _is_visible(effect):
            offset = effect.get('offset') or {}
            shadows.append(Shadow(
                name=node.get('name', ''),
                type=effect['type'],
                x=offset.get('x', 0),
                y=offset.get('y', 0),
                blur=effect.get('radius', 0),
                spread=effect.get('spread', 0),
                color=color_to_hex(effect.get('color'))
            ))
    return shadows


def categorize_color(node_name: str, color_hex: str, specs: DesignSpecs):
    """File a fill color under a palette category based on keywords in the node name"""
    name = node_name.lower()
    colors = specs.colors

    if 'primary' in name:
        colors.primary[node_name] = color_hex
    elif 'secondary' in name:
        colors.secondary[node_name] = color_hex
    elif 'background' in name or 'bg' in name:
        colors.background[node_name] = color_hex
    elif 'text' in name:
        colors.text[node_name] = color_hex
    elif any(keyword in name for keyword in ('success', 'error', 'warning', 'info')):
        colors.status[node_name] = color_hex
    elif 'border' in name:
        colors.border[node_name] = color_hex


def extract_node_properties(node: Dict, specs: DesignSpecs):
    """Collect the tokens of a single node without recursing"""
    name = node.get('name', '')

    if node.get('backgroundColor'):
        specs.colors.background[name] = color_to_hex(node['backgroundColor'])

    for fill in node.get('fills') or []:
        if fill.get('type') == 'SOLID' and fill.get('color') and _is_visible(fill):
            categorize_color(name, color_to_hex(fill['color']), specs)

    for stroke in node.get('strokes') or []:
        if stroke.get('type') == 'SOLID' and stroke.get('color') and _is_visible(stroke):
            specs.colors.border[name] = color_to_hex(stroke['color'])

    style = node.get('style')
    if style:
        typography = specs.typography
        if style.get('fontFamily') and not typography.font_family:
            typography.font_family = style['fontFamily']
        if style.get('fontSize', 0) > 0:
            typography.font_sizes[name] = style['fontSize']
        if style.get('fontWeight', 0) > 0:
            typography.font_weights[name] = style['fontWeight']
        if style.get('lineHeightPx', 0) > 0:
            typography.line_heights[name] = style['lineHeightPx']

    specs.shadows.extend(_shadows_of(node))

    if node.get('cornerRadius', 0) > 0:
        specs.radii[name] = node['cornerRadius']


def extract_from_node(node: Dict, specs: DesignSpecs):
    """Recursively collect tokens, spacing and layout dimensions from a subtree"""
    extract_node_properties(node, specs)
    name = node.get('name', '')

    paddings = {side: node.get(f'padding{side}', 0) for side in ('Left', 'Right', 'Top', 'Bottom')}
    if any(value > 0 for value in paddings.values()):
        for side, value in paddings.items():
            specs.spacing[f"{name}-padding{side}"] = value

    if node.get('itemSpacing', 0) > 0:
        specs.spacing[f"{name}-itemSpacing"] = node['itemSpacing']

    box = node.get('absoluteBoundingBox')
    if box:
        lowered = name.lower()
        if 'header' in lowered:
            specs.layout.header_height = box.get('height', 0)
        if 'sidebar' in lowered:
            specs.layout.sidebar_width = box.get('width', 0)

    for child in node.get('children') or []:
        extract_from_node(child, specs)


def extract_file_context(document: Dict, specs: DesignSpecs):
    """File-level context: the document root and its immediate children only"""
    extract_node_properties(document, specs)
    for child in document.get('children') or []:
        extract_node_properties(child, specs)


def deduplicate_colors(colors: Dict[str, str]) -> Dict[str, str]:
    seen = set()
    result = {}
    for name, color in colors.items():
        if color not in seen:
            seen.add(color)
            result[name] = color
    return result


def normalize_scale(values: Dict[str, float], scale_names: List[str]) -> Dict[str, float]:
    """Map the sorted unique positive values onto a named scale, dropping any overflow"""
    unique_values = sorted({value for value in values.values() if value > 0})
    return dict(zip(scale_names, unique_values))


def normalize_specs(specs: DesignSpecs):
    colors = specs.colors
    colors.primary = deduplicate_colors(colors.primary)
    colors.secondary = deduplicate_colors(colors.secondary)
    colors.background = deduplicate_colors(colors.background)
    colors.text = deduplicate_colors(colors.text)
    colors.status = deduplicate_colors(colors.status)
    colors.border = deduplicate_colors(colors.border)

    specs.typography.font_sizes = normalize_scale(specs.typography.font_sizes, FONT_SIZE_NAMES)
    specs.spacing = normalize_scale(specs.spacing, SPACING_NAMES)
    specs.radii = normalize_scale(specs.radii, RADIUS_NAMES)


def build_node_tree(node: Dict) -> NodeDescription:
    """Mirror a Figma node subtree as NodeDescriptions"""
    description = NodeDescription(
        id=node.get('id', ''),
        name=node.get('name', ''),
        type=node.get('type', '')
    )

    box = node.get('absoluteBoundingBox')
    if box:
        description.width = box.get('width', 0)
        description.height = box.get('height', 0)

    for fill in node.get('fills') or []:
        if not _is_visible(fill):
            continue
        if fill.get('type') == 'SOLID' and fill.get('color'):
            description.fill_colors.append(color_to_hex(fill['color']))
        if fill.get('type') == 'IMAGE' and fill.get('imageRef'):
            description.image_fills.append(fill['imageRef'])

    for stroke in node.get('strokes') or []:
        if stroke.get('type') == 'SOLID' and stroke.get('color') and _is_visible(stroke):
            description.stroke_colors.append(color_to_hex(stroke['color']))
    description.stroke_weight = node.get('strokeWeight', 0)
    description.corner_radius = node.get('cornerRadius', 0)

    if description.type == 'TEXT':
        description.text_content = node.get('characters', '')
    style = node.get('style')
    if style:
        description.font_family = style.get('fontFamily', '')
        description.font_size = style.get('fontSize', 0)
        description.font_weight = style.get('fontWeight', 0)
        description.line_height_px = style.get('lineHeightPx', 0)
        description.text_align_horizontal = style.get('textAlignHorizontal', '')

    description.layout_mode = node.get('layoutMode', '')
    description.padding_top = node.get('paddingTop', 0)
    description.padding_right = node.get('paddingRight', 0)
    description.padding_bottom = node.get('paddingBottom', 0)
    description.padding_left = node.get('paddingLeft', 0)
    description.item_spacing = node.get('itemSpacing', 0)
    description.shadows = _shadows_of(node)

    description.children = [build_node_tree(child) for child in node.get('children') or []]
    return description


def extract(file_data: Dict) -> DesignSpecs:
    """Extract design specifications from a complete file response"""
    specs = DesignSpecs()
    document = file_data.get('document') or {}

    extract_from_node(document, specs)
    specs.node_tree = [build_node_tree(document)]
    normalize_specs(specs)

    logger.debug(f"Extracted specs from document {document.get('name', '')!r}")
    return specs


def extract_nodes(file_data: Dict, nodes_data: Dict, node_ids: List[str],
                  inherit_file_context: bool = False) -> DesignSpecs:
    """Extract design specifications from specific nodes.

    With ``inherit_file_context`` the document root and its pages contribute
    their own tokens too (without descending into them).
    """
    specs = DesignSpecs()
    nodes = nodes_data.get('nodes') or {}

    if inherit_file_context and file_data and file_data.get('document'):
        extract_file_context(file_data['document'], specs)

    documents = [nodes[node_id]['document'] for node_id in node_ids
                 if nodes.get(node_id) and nodes[node_id].get('document')]

    for document in documents:
        extract_from_node(document, specs)
    specs.node_tree = [build_node_tree(document) for document in documents]

    normalize_specs(specs)
    return specs


def attach_assets_to_node_tree(roots: List[NodeDescription], assets: List[ExportedAsset]):
    """Link exported (non-screenshot) assets to the tree nodes they came from"""
    asset_map: Dict[str, List[ExportedAsset]] = {}
    for asset in assets:
        if asset.node_id and not asset.is_screenshot:
            asset_map.setdefault(asset.node_id, []).append(asset)

    if not asset_map:
        return

    def walk(description):
        description.exported_assets.extend(asset_map.get(description.id, []))
        for child in description.children:
            walk(child)

    for root in roots:
        walk(root)
