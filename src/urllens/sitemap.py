"""Sitemap fetching and parsing for domain discovery."""

import logging
import re
from typing import List, Optional, Tuple
from xml.etree import ElementTree as ET

import httpx

from urllens.constants import PROBE_TIMEOUT_SECONDS
from urllens.http_client import client_scope
from urllens.urls import is_valid_url

logger = logging.getLogger(__name__)

_URL_ENTRY_RE = re.compile(r'<url[^>]*>[\s\S]*?<loc[^>]*>([^<]+)</loc>[\s\S]*?</url>', re.IGNORECASE)
_SITEMAP_ENTRY_RE = re.compile(
    r'<sitemap[^>]*>[\s\S]*?<loc[^>]*>([^<]+)</loc>[\s\S]*?</sitemap>', re.IGNORECASE
)
_LOC_RE = re.compile(r'<loc[^>]*>([^<]+)</loc>', re.IGNORECASE)


class SitemapParser:
    """
    Fetch XML sitemaps and extract page URLs.

    Supports:
    - Standard <urlset> sitemaps
    - Sitemap index files, followed one level deep
    - Non-standard documents with bare <loc> entries
    """

    # XML namespaces used in sitemaps
    NAMESPACES = {
        'sm': 'http://www.sitemaps.org/schemas/sitemap/0.9',
    }

    ACCEPT = 'application/xml, text/xml, */*'

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = PROBE_TIMEOUT_SECONDS,
        max_depth: int = 1,
    ):
        """
        Initialize the sitemap parser.

        Args:
            client: Optional shared AsyncClient
            timeout: Request timeout in seconds
            max_depth: How many levels of sitemap indexes to follow
        """
        self.client = client
        self.timeout = timeout
        self.max_depth = max_depth

    async def parse(self, sitemap_url: str, max_urls: Optional[int] = None) -> List[str]:
        """
        Fetch a sitemap and return the page URLs it lists.

        Fetch or parse failures yield an empty list.

        Args:
            sitemap_url: URL of a sitemap or sitemap index
            max_urls: Maximum number of URLs to return (None for all)

        Returns:
            Page URLs in document order
        """
        async with client_scope(self.client, timeout=self.timeout) as http:
            urls = await self._fetch_and_parse(http, sitemap_url, depth=0)

        if max_urls:
            urls = urls[:max_urls]
        return urls

    async def _fetch_and_parse(self, http: httpx.AsyncClient, sitemap_url: str, depth: int) -> List[str]:
        content = await self._fetch(http, sitemap_url)
        if content is None:
            return []

        is_index, locs = self.parse_content(content)
        if not is_index:
            logger.info(f"Extracted {len(locs)} URLs from sitemap {sitemap_url}")
            return locs

        if depth >= self.max_depth:
            logger.info(f"Not following nested sitemap index {sitemap_url}")
            return []

        urls: List[str] = []
        for child_url in locs:
            logger.info(f"Found child sitemap: {child_url}")
            urls.extend(await self._fetch_and_parse(http, child_url, depth + 1))
        return urls

    async def _fetch(self, http: httpx.AsyncClient, sitemap_url: str) -> Optional[str]:
        """Return the sitemap body, or None if it is missing or not XML/text."""
        try:
            response = await http.get(
                sitemap_url,
                headers={'Accept': self.ACCEPT},
                timeout=self.timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            logger.debug(f"Failed to fetch sitemap {sitemap_url}: {e}")
            return None

        if not response.is_success:
            logger.debug(f"Sitemap {sitemap_url} returned {response.status_code}")
            return None

        content_type = response.headers.get('content-type', '')
        if 'xml' not in content_type and 'text/plain' not in content_type:
            logger.debug(f"Sitemap {sitemap_url} has unexpected content type {content_type!r}")
            return None

        return response.text

    @classmethod
    def parse_content(cls, content: str) -> Tuple[bool, List[str]]:
        """
        Parse sitemap XML.

        Args:
            content: Sitemap document

        Returns:
            Tuple of (is_sitemap_index, loc URLs). For an index the URLs are
            child sitemaps, otherwise page URLs.
        """
        try:
            root = ET.fromstring(cls._clean_xml_content(content))
        except ET.ParseError as e:
            logger.debug(f"Sitemap is not well-formed XML ({e}), falling back to pattern extraction")
            return cls._parse_with_patterns(content)

        root_tag = root.tag.split('}')[-1]
        if root_tag == 'sitemapindex':
            return True, cls._collect_locs(root, 'sitemap')
        if root_tag == 'urlset':
            return False, cls._collect_locs(root, 'url')

        logger.warning(f"Unknown sitemap root element: {root_tag}")
        return cls._parse_with_patterns(content)

    @staticmethod
    def _clean_xml_content(content: str) -> str:
        """Strip a DOCTYPE and leading whitespace that would break the XML parser."""
        return re.sub(r'<!DOCTYPE[^>]*>', '', content).strip()

    @classmethod
    def _collect_locs(cls, root: ET.Element, entry_tag: str) -> List[str]:
        urls = []

        for entry in root:
            if entry.tag.split('}')[-1] != entry_tag:
                continue

            loc = entry.find('sm:loc', cls.NAMESPACES)
            if loc is None:
                loc = entry.find('loc')

            if loc is not None and loc.text:
                url = loc.text.strip()
                if is_valid_url(url):
                    urls.append(url)

        return urls

    @staticmethod
    def _parse_with_patterns(content: str) -> Tuple[bool, List[str]]:
        if '<sitemapindex' in content:
            matches = _SITEMAP_ENTRY_RE.findall(content)
            return True, [m.strip() for m in matches if is_valid_url(m.strip())]

        matches = _URL_ENTRY_RE.findall(content) or _LOC_RE.findall(content)
        return False, [m.strip() for m in matches if is_valid_url(m.strip())]
