from pathlib import Path

import pytest

from figma_specs.extraction import Options, parse_node_ids, parse_scales, run
from figma_specs.figma_client import FigmaAPIError

from conftest import FakeClient, FakeDownloader, render_url

EXPORT_SETTING = [{'format': 'PNG', 'suffix': '', 'constraint': {'type': 'SCALE', 'value': 1}}]

FILE_URL = 'https://www.figma.com/design/KEY123/Marketing-Site'


class DesignClient(FakeClient):
    """FakeClient that also serves file and node responses"""

    def __init__(self, file_data, **kwargs):
        super().__init__(**kwargs)
        self.file_data = file_data
        self.get_file_calls = 0
        self.get_file_nodes_calls = []

    def get_file(self, file_key):
        self.get_file_calls += 1
        return self.file_data

    def get_file_nodes(self, file_key, node_ids):
        self.get_file_nodes_calls.append(list(node_ids))
        nodes = {}
        for node_id in node_ids:
            node = find_node(self.file_data['document'], node_id)
            nodes[node_id] = {'document': node}
        return {'nodes': nodes}


def find_node(node, node_id):
    if node.get('id') == node_id:
        return node
    for child in node.get('children') or []:
        found = find_node(child, node_id)
        if found:
            return found
    return None


def marketing_file():
    return {
        'name': 'Marketing Site',
        'document': {
            'id': '0:0', 'name': 'Document', 'type': 'DOCUMENT',
            'children': [{
                'id': '0:1', 'name': 'Landing', 'type': 'CANVAS',
                'children': [{
                    'id': '1:1', 'name': 'Hero', 'type': 'FRAME',
                    'absoluteBoundingBox': {'x': 0, 'y': 0, 'width': 1440, 'height': 720},
                    'children': [{
                        'id': '2:1', 'name': 'Content', 'type': 'FRAME',
                        'children': [
                            {'id': '3:1', 'name': 'Brand Logo', 'type': 'VECTOR', 'exportSettings': EXPORT_SETTING},
                            {'id': '3:2', 'name': 'Hero Photo', 'type': 'RECTANGLE',
                             'fills': [{'type': 'IMAGE', 'imageRef': 'ref-hero'}]},
                        ],
                    }],
                }],
            }],
        },
    }


def make_options(tmp_path, **overrides):
    values = dict(access_token='figd_test', file_url=FILE_URL, image_dir=str(tmp_path / 'figma-assets'))
    values.update(overrides)
    return Options(**values)


def test_parse_scales():
    assert parse_scales('1, 2,3') == [1.0, 2.0, 3.0]
    assert parse_scales('1.5') == [1.5]
    assert parse_scales('') == [1.0]
    assert parse_scales(' , ') == [1.0]


@pytest.mark.parametrize("value, message", [
    ('1,abc', "invalid scale value 'abc'"),
    ('0', "scale value must be positive"),
    ('2,-1', "scale value must be positive"),
    ('nan', "scale value must be finite"),
    ('1,inf', "scale value must be finite"),
    ('-inf', "scale value must be finite"),
])
def test_parse_scales_rejects_bad_values(value, message):
    with pytest.raises(ValueError, match=message):
        parse_scales(value)


def test_parse_node_ids():
    assert parse_node_ids(' 1:2, 3:4 ,,') == ['1:2', '3:4']
    assert parse_node_ids('') == []


def test_whole_file_run_without_export(tmp_path):
    client = DesignClient(marketing_file())

    result = run(make_options(tmp_path), client=client, downloader=FakeDownloader())

    assert result.file_name == 'Marketing Site'
    assert result.markdown.startswith('# Figma Design Specifications - Marketing Site')
    assert result.export_result is None
    assert result.specs.node_tree == []
    assert client.get_file_calls == 1
    assert client.get_file_nodes_calls == []
    assert client.get_images_calls == []
    assert not (tmp_path / 'figma-assets').exists()
    assert result.api_stats['api_calls'] == 0


def test_node_ids_from_url(tmp_path):
    client = DesignClient(marketing_file())

    run(make_options(tmp_path, file_url=FILE_URL + '?node-id=1-1'), client=client, downloader=FakeDownloader())

    assert client.get_file_nodes_calls == [['1:1']]


def test_explicit_node_ids_win_over_url(tmp_path):
    client = DesignClient(marketing_file())
    options = make_options(tmp_path, file_url=FILE_URL + '?node-id=1-1', node_ids=['2:1'])

    run(options, client=client, downloader=FakeDownloader())

    assert client.get_file_nodes_calls == [['2:1']]


def test_export_run_collects_assets_and_component_tree(tmp_path):
    client = DesignClient(
        marketing_file(),
        render_urls={node_id: render_url(node_id) for node_id in ('1:1', '2:1', '3:1')},
        file_images={'ref-hero': 'https://s3.example.com/images/ref-hero.jpg'}
    )
    options = make_options(tmp_path, file_url=FILE_URL + '?node-id=1-1', export_images=True, component_tree=True)

    result = run(options, client=client, downloader=FakeDownloader())

    asset_dir = Path(options.image_dir)
    files = sorted(asset.file_name for asset in result.specs.exported_assets)
    assert set(files) == {'brand-logo.png', 'complete_design_screenshot.png', 'complete_design_screenshot-2.png',
                          'hero-photo.jpg'}
    assert all((asset_dir / name).is_file() for name in files)

    assert f'![Complete Design Screenshot]({options.image_dir}/complete_design_screenshot.png)' in result.markdown
    assert '## Component Tree' in result.markdown
    assert f'asset:{options.image_dir}/brand-logo.png' in result.markdown
    assert result.export_result.errors == []
    assert result.api_stats['api_calls'] == len(client.get_images_calls) + client.get_file_images_calls


def test_invalid_image_format_fails_before_any_request(tmp_path):
    client = DesignClient(marketing_file())

    with pytest.raises(ValueError, match="invalid image format"):
        run(make_options(tmp_path, export_images=True, image_format='webp'), client=client)

    assert client.get_file_calls == 0


def test_invalid_url_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="invalid Figma URL"):
        run(make_options(tmp_path, file_url='https://example.com/not-figma'), client=DesignClient(marketing_file()))


def test_rejected_token_stops_before_fetching(tmp_path):
    client = DesignClient(marketing_file(), token_valid=False)

    with pytest.raises(FigmaAPIError, match="token was rejected"):
        run(make_options(tmp_path), client=client, downloader=FakeDownloader())

    assert client.get_file_calls == 0
    assert client.get_file_nodes_calls == []
