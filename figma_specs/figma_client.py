import re
import time
import logging
from typing import Dict, List, Optional
from urllib.parse import unquote

import requests

logger = logging.getLogger(__name__)

FIGMA_API_BASE = "https://api.figma.com/v1"
MAX_NODES_PER_REQUEST = 100
RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)

_FILE_KEY_PATTERN = re.compile(r'^https?://(?:www\.)?figma\.com/(?:file|design)/([A-Za-z0-9]+)(?:/|\?|#|$)')
_QUERY_NODE_PATTERN = re.compile(r'[?&]node-id=([^&#]+)')
_HASH_NODE_PATTERN = re.compile(r'#([0-9:-]+(?:,[0-9:-]+)*)')
_PATH_NODE_PATTERN = re.compile(r'/nodes/([0-9:-]+(?:,[0-9:-]+)*)')


class FigmaAPIError(Exception):
    """Terminal failure talking to the Figma API (after retries, or non-retryable)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def extract_file_key(figma_url: str) -> str:
    """Extract the file key from a figma.com /file/ or /design/ URL"""
    match = _FILE_KEY_PATTERN.match(figma_url or '')
    if not match:
        raise ValueError(
            "invalid Figma URL format: must be a valid figma.com URL with /file/ or /design/ path"
        )
    return match.group(1)


def _dedupe(node_ids: List[str]) -> List[str]:
    seen = set()
    result = []
    for node_id in node_ids:
        if node_id and node_id not in seen:
            seen.add(node_id)
            result.append(node_id)
    return result


def extract_node_ids(figma_url: str) -> List[str]:
    """Extract node IDs from a Figma URL.

    Looks at the ``node-id`` query parameter first (dashes are the URL form of
    colons), then a ``#1:2`` fragment, then a ``/nodes/1:2`` path segment.
    Returns an empty list when the URL targets no node.
    """
    match = _QUERY_NODE_PATTERN.search(figma_url)
    if match:
        ids = [unquote(part).strip().replace('-', ':') for part in match.group(1).split(',')]
        return _dedupe(ids)

    for pattern in (_HASH_NODE_PATTERN, _PATH_NODE_PATTERN):
        match = pattern.search(figma_url)
        if match:
            return _dedupe([part.strip() for part in match.group(1).split(',')])

    return []


class FigmaClient:
    """Figma REST API client with rate limiting, batching and retry-with-backoff"""

    def __init__(self, api_token: str, max_retries: int = 3, timeout: float = 600,
                 retry_delay: float = 2.0, session: Optional[requests.Session] = None):
        self.api_token = api_token
        self.base_url = FIGMA_API_BASE
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({
            'X-Figma-Token': self.api_token,
            'User-Agent': 'Figma-Design-Specs/1.0'
        })

        # Rate limiting
        self.last_request_time = 0
        self.min_request_interval = 0.1  # 100ms between requests

        self.stats = {
            'api_calls': 0,
            'retries': 0,
            'errors': 0
        }

    def _rate_limit(self):
        """Rate limiting to avoid overwhelming Figma API"""
        current_time = time.time()
        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)
        self.last_request_time = time.time()

    def _backoff(self, attempt: int):
        time.sleep(attempt * self.retry_delay)
        self.stats['retries'] += 1

    def _get(self, endpoint: str, params: Optional[Dict] = None) -> Dict:
        """GET an API endpoint, retrying transport errors, 429 and 5xx responses.

        Raises FigmaAPIError once the retries are exhausted, or right away for
        any other non-200 status, an unparsable body or an ``err`` payload.
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            self._rate_limit()
            self.stats['api_calls'] += 1

            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = FigmaAPIError(f"attempt {attempt} failed to execute request: {e}")
                logger.warning(f"Request to {endpoint} failed (attempt {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    self._backoff(attempt)
                    continue
                break

            if response.status_code != 200:
                last_error = FigmaAPIError(
                    f"API request failed with status {response.status_code}: {response.text[:500]}",
                    status_code=response.status_code
                )
                if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                    logger.warning(
                        f"{endpoint} returned {response.status_code}, retrying "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    self._backoff(attempt)
                    continue
                break

            try:
                data = response.json()
            except ValueError as e:
                self.stats['errors'] += 1
                raise FigmaAPIError(f"failed to parse response from {endpoint}: {e}") from e

            if isinstance(data, dict) and data.get('err'):
                self.stats['errors'] += 1
                raise FigmaAPIError(f"Figma API error from {endpoint}: {data['err']}")

            return data

        self.stats['errors'] += 1
        raise last_error

    def validate_token(self) -> bool:
        """Validate the API token"""
        try:
            user_info = self._get('me')
        except FigmaAPIError as e:
            logger.error(f"Token validation failed: {e}")
            return False
        logger.info(f"Authenticated as: {user_info.get('email', 'Unknown user')}")
        return True

    def get_file(self, file_key: str) -> Dict:
        """Fetch the complete file: document tree, styles and metadata"""
        logger.info(f"Fetching file data for: {file_key}")
        data = self._get(f"files/{file_key}")
        logger.info(f"Successfully fetched file: {data.get('name', 'Unknown')}")
        return data

    def get_file_nodes(self, file_key: str, node_ids: List[str]) -> Dict:
        """Fetch specific nodes; every requested node must come back"""
        if not node_ids:
            raise ValueError("no node IDs provided")

        logger.info(f"Fetching {len(node_ids)} specific node(s) from Figma API...")
        data = self._get(f"files/{file_key}/nodes", params={'ids': ','.join(node_ids)})

        nodes = data.get('nodes') or {}
        if not nodes:
            raise FigmaAPIError(f"no nodes found for the provided IDs: {','.join(node_ids)}")

        missing_nodes = [node_id for node_id in node_ids if not nodes.get(node_id)]
        if missing_nodes:
            raise FigmaAPIError(f"nodes not found: {', '.join(missing_nodes)}")

        return data

    def get_file_styles(self, file_key: str) -> Dict:
        """Fetch the published styles of a file"""
        return self._get(f"files/{file_key}/styles")

    def get_images(self, file_key: str, node_ids: List[str], fmt: str = 'png',
                   scale: float = 1) -> Dict[str, Optional[str]]:
        """Get rendered image URLs for nodes, at most 100 node IDs per request.

        Nodes the API could not render map to None or an empty string.
        """
        if not node_ids:
            raise ValueError("no node IDs provided")
        fmt = fmt or 'png'
        if scale <= 0:
            scale = 1

        images = {}
        for i in range(0, len(node_ids), MAX_NODES_PER_REQUEST):
            batch = node_ids[i:i + MAX_NODES_PER_REQUEST]
            params = {
                'ids': ','.join(batch),
                'format': fmt,
                'scale': f"{scale:g}"
            }
            logger.debug(f"Requesting {len(batch)} {fmt} render(s) at {scale:g}x")
            data = self._get(f"images/{file_key}", params=params)
            images.update(data.get('images') or {})

        return images

    def get_file_images(self, file_key: str) -> Dict[str, str]:
        """Get download URLs for every embedded image fill in the file (imageRef -> URL)"""
        logger.info("Fetching embedded image download URLs...")
        data = self._get(f"files/{file_key}/images")
        meta = data.get('meta') or {}
        images = meta.get('images')
        if images is None:
            images = data.get('images') or {}
        return images

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
