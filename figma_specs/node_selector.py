from typing import Dict, List

from .models import ImageFillNode


def collect_exportable_nodes(root: Dict) -> Dict[str, str]:
    """Map node ID -> name for every node (root included) with designer export settings"""
    nodes = {}

    def traverse(node):
        if node.get('exportSettings'):
            nodes[node.get('id', '')] = node.get('name', '')
        for child in node.get('children') or []:
            traverse(child)

    traverse(root)
    return nodes


def collect_image_fill_nodes(root: Dict) -> List[ImageFillNode]:
    """Find nodes with an IMAGE fill that has a non-empty imageRef.

    Only the first matching fill of a node is taken; traversal continues into
    the children either way.
    """
    nodes = []

    def traverse(node):
        for fill in node.get('fills') or []:
            if fill.get('type') == 'IMAGE' and fill.get('imageRef'):
                nodes.append(ImageFillNode(
                    node_id=node.get('id', ''),
                    node_name=node.get('name', ''),
                    image_ref=fill['imageRef']
                ))
                break
        for child in node.get('children') or []:
            traverse(child)

    traverse(root)
    return nodes


def image_fill_nodes_to_map(nodes: List[ImageFillNode]) -> Dict[str, str]:
    """Node ID -> name map suitable for the render API fallback"""
    return {node.node_id: node.node_name for node in nodes}


def immediate_children(node: Dict) -> Dict[str, str]:
    return {child.get('id', ''): child.get('name', '') for child in node.get('children') or []}
