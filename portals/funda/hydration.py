"""Locate the rich listing payload inside a detail page's hydration state."""

import json
import logging
from collections import deque
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from models.funda import RichListingPayload

logger = logging.getLogger(__name__)


class HydrationExtractor:
    """
    Find the listing object inside inlined JSON script blocks.

    The page's client-side state nests the listing payload at a depth that
    changes between site releases. Instead of a fixed path the extractor
    walks every parsed JSON tree breadth-first and returns the first object
    that carries all signature keys.
    """

    SIGNATURE_KEYS = ("features", "media", "description")

    # Upper bound on visited nodes per script block
    MAX_VISITED_NODES = 10000

    def extract(self, html: str) -> Optional[RichListingPayload]:
        """
        Extract the rich payload from detail page HTML.

        Args:
            html: Raw detail page HTML

        Returns:
            RichListingPayload, or None if no script block carries one
        """
        if not html:
            return None

        for document in self._json_documents(html):
            found = self.find_listing_object(document)
            if found is not None:
                try:
                    return RichListingPayload.from_dict(found)
                except Exception as e:
                    logger.debug(f"Hydration object did not match listing shape, trying next block: {e}")

        logger.debug("No hydration payload with listing signature found")
        return None

    def find_listing_object(self, root: Any) -> Optional[Dict[str, Any]]:
        """
        Breadth-first search for the first object holding all signature keys.

        Args:
            root: Parsed JSON value (dict, list or scalar)

        Returns:
            The matching object, or None when none exists within the node budget
        """
        queue = deque([root])
        visited = 0

        while queue:
            node = queue.popleft()
            visited += 1
            if visited > self.MAX_VISITED_NODES:
                logger.debug(f"Hydration search stopped after {self.MAX_VISITED_NODES} nodes")
                return None

            if isinstance(node, dict):
                if all(key in node for key in self.SIGNATURE_KEYS):
                    return node
                children = node.values()
            elif isinstance(node, list):
                children = node
            else:
                continue

            for child in children:
                if isinstance(child, (dict, list)):
                    queue.append(child)

        return None

    def _json_documents(self, html: str) -> Iterator[Any]:
        soup = BeautifulSoup(html, "html.parser")
        for script in self._candidate_scripts(soup):
            text = script.string or script.get_text()
            if not text or not text.strip():
                continue
            try:
                yield json.loads(text)
            except ValueError:
                logger.debug("Skipping script block with invalid JSON")

    @staticmethod
    def _candidate_scripts(soup: BeautifulSoup) -> List[Any]:
        scripts = []
        for script in soup.find_all("script"):
            script_type = (script.get("type") or "").lower()
            if script_type in ("application/json", "application/ld+json") or script.get("id") == "__NUXT_DATA__":
                scripts.append(script)
        return scripts
