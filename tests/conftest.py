import threading
from pathlib import Path

import pytest
import requests

from figma_specs.config import ExportConfig
from figma_specs.downloader import Downloader, DownloadError
from figma_specs.figma_client import FigmaAPIError


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text='', content=b'', raise_on_json=False,
                 stream_error=None):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.content = content
        self._raise_on_json = raise_on_json
        self._stream_error = stream_error

    def json(self):
        if self._raise_on_json:
            raise ValueError("Expecting value")
        return self._json_data

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]
        if self._stream_error is not None:
            raise self._stream_error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records every GET"""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.headers = {}

    def get(self, url, params=None, **kwargs):
        self.calls.append({'url': url, 'params': params, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClient:
    """In-process stand-in for FigmaClient.

    ``render_urls`` maps node ID -> URL for the render API; a missing node gets
    no entry in the response. ``file_images`` is the imageRef -> URL table, or
    an exception to raise.
    """

    def __init__(self, render_urls=None, file_images=None, render_error=None, token_valid=True):
        self.token_valid = token_valid
        self.render_urls = render_urls or {}
        self.file_images = file_images if file_images is not None else {}
        self.render_error = render_error
        self.get_images_calls = []
        self.get_file_images_calls = 0
        self._lock = threading.Lock()

    def get_images(self, file_key, node_ids, fmt='png', scale=1):
        with self._lock:
            self.get_images_calls.append({'ids': list(node_ids), 'format': fmt, 'scale': scale})
        if self.render_error is not None:
            raise self.render_error
        return {node_id: self.render_urls[node_id] for node_id in node_ids if node_id in self.render_urls}

    def get_file_images(self, file_key):
        self.get_file_images_calls += 1
        if isinstance(self.file_images, Exception):
            raise self.file_images
        return self.file_images

    def validate_token(self):
        return self.token_valid

    def get_stats(self):
        return {'api_calls': len(self.get_images_calls) + self.get_file_images_calls, 'retries': 0, 'errors': 0}


class FakeDownloader(Downloader):
    """Writes the URL into the destination file instead of fetching it"""

    def __init__(self, failing_urls=(), max_workers=5):
        super().__init__(max_workers=max_workers, retry_delay=0)
        self.failing_urls = set(failing_urls)
        self.downloaded = []
        self._lock = threading.Lock()

    def download(self, url, dest_path):
        if url in self.failing_urls:
            raise DownloadError("unexpected status 404 downloading image")
        data = url.encode('utf-8')
        Path(dest_path).write_bytes(data)
        with self._lock:
            self.downloaded.append((url, Path(dest_path).name))
        return len(data)


def render_url(node_id, fmt='png'):
    return f"https://figma-renders.example.com/{node_id.replace(':', '-')}.{fmt}"


@pytest.fixture
def fake_downloader():
    return FakeDownloader()


@pytest.fixture
def export_config(tmp_path):
    return ExportConfig(format='png', scales=[1.0], output_dir=str(tmp_path / 'assets'))


@pytest.fixture
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr('figma_specs.figma_client.time.sleep', lambda seconds: sleeps.append(seconds))
    monkeypatch.setattr('figma_specs.downloader.time.sleep', lambda seconds: sleeps.append(seconds))
    return sleeps


@pytest.fixture
def api_error():
    return FigmaAPIError("API request failed with status 500: boom", status_code=500)


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection reset")
