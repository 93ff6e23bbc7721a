"""
Image resolver: picks the display image for each localized dish.

Menu scans get a remote thumbnail lookup keyed by the dish name; dish scans
reuse the captured photo as an embedded data URI.
"""

import logging
from typing import List, Optional, Sequence
from urllib.parse import quote

from dishscan.config.settings import ThumbnailSettings
from dishscan.models.internal_models import Dish, EncodedImage, LocalizedDish
from dishscan.services.image_codec import to_data_uri

logger = logging.getLogger(__name__)


def build_search_query(original_name: str, english_name: str, name: str) -> str:
    """Original name + English (or translated) name + "food dish" """
    return f"{original_name or ''} {english_name or name} food dish".strip()


class ImageResolver:
    """Assigns a display image URI to every dish"""

    def __init__(self, config: Optional[ThumbnailSettings] = None):
        self.config = config or ThumbnailSettings()

    def thumbnail_url(self, query: str) -> str:
        """Remote thumbnail lookup URI for a free-text query"""
        c = self.config
        return (
            f"{c.base_url}?q={quote(query, safe='')}"
            f"&w={c.width}&h={c.height}&c={c.crop}&rs={c.resize_mode}&p={c.padding}"
        )

    def resolve(
        self,
        localized: Sequence[LocalizedDish],
        is_menu: bool,
        source: EncodedImage,
        scan_id: str,
    ) -> List[Dish]:
        """
        Build final dishes in localizer order.

        No network call happens here; thumbnail URIs are only constructed.
        """
        embedded = None if is_menu else to_data_uri(source)
        dishes = []
        for index, item in enumerate(localized):
            dish = item.dish
            if is_menu:
                image = self.thumbnail_url(build_search_query(dish.original_name, dish.english_name, dish.name))
            else:
                image = embedded
            dishes.append(Dish(
                id=f"{scan_id}-{index}",
                name=dish.name,
                original_name=dish.original_name,
                english_name=dish.english_name,
                description=dish.description,
                tags=tuple(dish.tags),
                allergens=tuple(dish.allergens),
                spice_level=dish.spice_level,
                category=dish.category,
                bounding_box=tuple(item.bounding_box),
                image=image,
                is_menu=is_menu,
                is_ocr_refined=item.is_ocr_refined,
            ))

        logger.debug(f"Resolved images for {len(dishes)} dishes (menu={is_menu})")
        return dishes
