"""Python client for the admin analytics API.

``DashboardClient`` is what a dashboard (or the ``sentiment_report``
command) uses to read analytics.  Sentiment tables are looked up in a
``TTLCache`` before any request goes out; a miss fetches from
``/api/admin/getsentimenttable`` and overwrites the cache entry.  The
default cache keeps a separate directory per API host, so tables from
different servers never mix under the same ``sentimentData_*`` key.  Chart
slices are then labelled through a ``TopicLabeler`` and any category
without a count, without sample texts or without a label is left out.

Transport and classifier failures never escape ``sentiment_chart``: the
returned ``SentimentChart`` carries an ``error`` message instead and the
previous cache entry, stale or not, is left as it was.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlsplit

import requests
from django.conf import settings

from core.services.classifier import ClassifierError, TopicLabeler
from core.services.ttl_cache import JsonFileStore, TTLCache, cache_key

logger = logging.getLogger(__name__)

SENTIMENT_CACHE_KIND = 'sentimentData'
SENTIMENT_ORDER: Sequence[str] = ('positive', 'neutral', 'negative')
SENTIMENT_COLOURS: Dict[str, str] = {
    'positive': '#1f78b4',
    'neutral': 'rgb(251, 255, 41)',
    'negative': '#e31a1c',
}
# Texts forwarded to the labeler per category.
LABEL_SAMPLE_SIZE = 3


class DashboardError(Exception):
    """Raised when the analytics API returns an unusable response."""


@dataclass
class ChartSlice:
    category: str
    label: str
    value: int
    color: str

    @property
    def name(self) -> str:
        return f"{self.category.title()} ({self.label})"

    def as_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'value': self.value, 'color': self.color}


@dataclass
class SentimentChart:
    year: Optional[int]
    quarter: Optional[int]
    slices: List[ChartSlice] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _as_count(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def build_sentiment_slices(
    counts: Mapping[str, Any],
    samples: Mapping[str, Sequence[str]],
    labeler: TopicLabeler,
) -> List[ChartSlice]:
    """Turn a sentiment table into labelled pie slices.

    A category is rendered only when its count is non-zero and the labeler
    produced a label from its sample texts.  Categories without samples
    are not sent to the labeler at all.
    """

    slices: List[ChartSlice] = []
    for category in SENTIMENT_ORDER:
        value = _as_count(counts.get(category))
        texts = [text for text in (samples.get(category) or []) if text]
        if value <= 0 or not texts:
            continue
        try:
            label = labeler.label_category(texts[:LABEL_SAMPLE_SIZE])
        except ClassifierError as exc:
            logger.warning('Topic label for %s sentiment unavailable: %s', category, exc)
            continue
        if not label:
            continue
        slices.append(ChartSlice(category=category, label=label, value=value, color=SENTIMENT_COLOURS[category]))
    return slices


class HttpTopicLabeler(TopicLabeler):
    """Labeler that relays texts to ``POST /api/analyzetopics``."""

    def __init__(
        self,
        api_host: str,
        *,
        token_label: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.url = f"{api_host.rstrip('/')}/api/analyzetopics"
        self.token_label = token_label or getattr(settings, 'DASHBOARD_TOKEN_LABEL', 'DEV_free')
        self.session = session or requests.Session()
        self.timeout = timeout or getattr(settings, 'DASHBOARD_HTTP_TIMEOUT', 30)

    def label_category(self, texts: Sequence[str]) -> Optional[str]:
        if not texts:
            return None
        try:
            response = self.session.post(
                self.url,
                json={'text': '\n'.join(texts), 'tokenLabel': self.token_label},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ClassifierError(f'Topic labelling request failed: {exc}') from exc
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0].get('customLabel') or None
        return None


def host_namespace(api_host: str) -> str:
    """Directory name identifying one API origin, e.g. ``https_api.example.com_8443``."""

    parts = urlsplit(api_host.strip().rstrip('/'))
    raw = f"{parts.scheme}_{parts.netloc}{parts.path}" if parts.netloc else api_host
    return re.sub(r'[^A-Za-z0-9.-]+', '_', raw.lower()).strip('_') or 'default'


def default_cache(api_host: Optional[str] = None) -> TTLCache:
    """Cache persisted under ``DASHBOARD_CACHE_ROOT``, one directory per API host."""

    host = api_host or settings.DASHBOARD_API_HOST
    return TTLCache(
        JsonFileStore(Path(settings.DASHBOARD_CACHE_ROOT) / host_namespace(host)),
        ttl_seconds=getattr(settings, 'DASHBOARD_CACHE_TTL_SECONDS', 30),
    )


class DashboardClient:
    """Reads analytics from the API with a time-boxed local cache."""

    def __init__(
        self,
        api_host: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        cache: Optional[TTLCache] = None,
        labeler: Optional[TopicLabeler] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.api_host = (api_host or settings.DASHBOARD_API_HOST).rstrip('/')
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else default_cache(self.api_host)
        self.timeout = timeout or getattr(settings, 'DASHBOARD_HTTP_TIMEOUT', 30)
        self.labeler = labeler or HttpTopicLabeler(self.api_host, session=self.session, timeout=self.timeout)

    def _url(self, path: str) -> str:
        return f"{self.api_host}/{path.lstrip('/')}"

    @staticmethod
    def _period_params(year: Optional[int], quarter: Optional[int]) -> Dict[str, int]:
        params: Dict[str, int] = {}
        if year:
            params['year'] = year
        if quarter:
            params['quarter'] = quarter
        return params

    def _get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = self.session.get(self._url(path), params=params or None, timeout=self.timeout)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise DashboardError(f'{path} did not return JSON.') from exc

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """Open an authenticated session; raises on rejection."""

        response = self.session.post(
            self._url('/api/auth/login'),
            json={'username': username, 'password': password},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def fetch_sentiment_table(self, year: Optional[int] = None, quarter: Optional[int] = None) -> Dict[str, Any]:
        """Sentiment counts and samples, served from cache while fresh."""

        key = cache_key(SENTIMENT_CACHE_KIND, year, quarter)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug('Sentiment table %s served from cache', key.data)
            return cached
        data = self._get_json('/api/admin/getsentimenttable', self._period_params(year, quarter))
        if not isinstance(data, dict) or not isinstance(data.get('counts'), dict):
            raise DashboardError('Sentiment table response is missing counts.')
        self.cache.set(key, data)
        return data

    def fetch_entity_metrics(self, year: Optional[int] = None, quarter: Optional[int] = None) -> List[Dict[str, Any]]:
        data = self._get_json('/api/admin/getEntityMetrics', self._period_params(year, quarter))
        if not isinstance(data, list):
            raise DashboardError('Entity metrics response is not a list.')
        return data

    def sentiment_chart(self, year: Optional[int] = None, quarter: Optional[int] = None) -> SentimentChart:
        """Labelled sentiment slices, or an error state when fetching fails."""

        chart = SentimentChart(year=year, quarter=quarter)
        try:
            table = self.fetch_sentiment_table(year, quarter)
        except (requests.RequestException, DashboardError) as exc:
            logger.error('Error fetching sentiment table for %s/%s: %s', year, quarter, exc)
            chart.error = str(exc) or exc.__class__.__name__
            return chart
        samples = {category: table.get(category) or [] for category in SENTIMENT_ORDER}
        chart.slices = build_sentiment_slices(table['counts'], samples, self.labeler)
        return chart


__all__ = [
    'ChartSlice',
    'DashboardClient',
    'DashboardError',
    'HttpTopicLabeler',
    'SENTIMENT_COLOURS',
    'SentimentChart',
    'build_sentiment_slices',
    'default_cache',
    'host_namespace',
]
