"""
Product-Page Grouper

Clusters interactions that belong to the same product page using the
retailer URL shape table in url_patterns.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from pipeline import url_patterns
from world_model.models import ParsedInteraction

logger = logging.getLogger(__name__)


class ProductPageGrouper:
    """
    Group interactions by inferred product identity.

    Interactions whose URL matches no product shape are left out; they stay
    available to the category extractor.
    """

    @staticmethod
    def group_key(url: str) -> Optional[str]:
        """
        Group key for a URL.

        Args:
            url: Page URL

        Returns:
            "{vendor}-product-{id}" for retailer shapes, the base URL for
            generic product pages, or None
        """
        return url_patterns.product_group_key(url)

    def group(self, interactions: Iterable[ParsedInteraction]) -> Dict[str, List[ParsedInteraction]]:
        """
        Group interactions by product page.

        Args:
            interactions: Parsed interactions in session order

        Returns:
            Ordered mapping of group key to member interactions
        """
        groups: Dict[str, List[ParsedInteraction]] = OrderedDict()
        excluded = 0
        for interaction in interactions:
            key = self.group_key(interaction.url)
            if key is None:
                excluded += 1
                continue
            groups.setdefault(key, []).append(interaction)

        logger.debug(f"Grouped interactions into {len(groups)} product pages ({excluded} not on a product page)")
        return groups
