"""
Buildkite API client
Read-only access to the builds endpoint used to find outstanding jobs
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from .exceptions import FetchError
from .matcher import JobDescriptor, extract_jobs

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'https://api.buildkite.com/v2'

# Builds that may still have jobs waiting for an agent
OUTSTANDING_BUILD_STATES = ('scheduled', 'running', 'failing')


class BuildkiteClient:
    """
    Minimal Buildkite REST client

    Usage:
        client = BuildkiteClient(org='my-org', api_token='bkua_...')
        jobs = client.fetch_jobs()
    """

    def __init__(
        self,
        org: str,
        api_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30,
        per_page: int = 100,
    ):
        self.org = org
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.per_page = per_page
        self.session = requests.Session()
        self.session.headers['Authorization'] = f'Bearer {api_token}'
        self.session.headers['Accept'] = 'application/json'

    def _request(self, method: str, path: str, params: Optional[Dict] = None) -> Any:
        """Make HTTP request to API, raising FetchError on any failure"""
        url = f'{self.api_url}{path}'

        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout:
            raise FetchError(f'Request to {url} timed out after {self.timeout}s')
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchError(f'Request to {url} failed with HTTP {status}', status_code=status)
        except requests.RequestException as e:
            raise FetchError(f'Request to {url} failed: {e}')

        try:
            return response.json()
        except ValueError:
            raise FetchError(f'Response from {url} is not valid JSON', status_code=response.status_code)

    def list_builds(self, states: Iterable[str] = OUTSTANDING_BUILD_STATES) -> List[Dict[str, Any]]:
        """List builds in the given states across the organization

        Args:
            states: Build states to include

        Returns:
            List of build dicts, each with a 'jobs' list

        Raises:
            FetchError: on transport errors, timeouts, non-2xx responses,
                or a payload that is not a list of build objects
        """
        params = {
            'state[]': list(states),
            'per_page': self.per_page,
        }
        builds = self._request('GET', f'/organizations/{self.org}/builds', params=params)

        if not isinstance(builds, list) or not all(isinstance(b, dict) for b in builds):
            raise FetchError('Malformed builds response: expected a list of build objects')
        logger.debug('Fetched %d build(s) for %s', len(builds), self.org)
        return builds

    def fetch_jobs(self) -> List[JobDescriptor]:
        """Fetch outstanding builds and flatten them into eligible jobs"""
        try:
            return extract_jobs(self.list_builds())
        except (AttributeError, TypeError, ValueError) as e:
            raise FetchError(f'Malformed job in builds response: {e}')

    def close(self):
        """Close the session"""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
