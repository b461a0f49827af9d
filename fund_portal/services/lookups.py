"""
lookups.py – category and subcategory names for one screen
"""

from typing import Any, Iterable, Mapping, Optional

from fund_portal.services.backend_client import BackendClient, BackendError, pick_array
from fund_portal.utils.logger import get_logger


logger = get_logger("lookups")


def _name_map(items: Iterable[Any], id_keys: tuple, name_keys: tuple) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        item_id = next((item[k] for k in id_keys if item.get(k) is not None), None)
        if item_id is None:
            continue
        name = next((item[k] for k in name_keys if item.get(k)), "-")
        out[str(item_id)] = name
    return out


class LookupCache:
    """
    Category / subcategory names owned by one screen.

    Loaded once on first use and reused until `invalidate()`. A failed load
    leaves the maps empty but still counts as loaded.
    """

    def __init__(self, client: BackendClient, visible_only: bool = False):
        self.client = client
        self.visible_only = visible_only
        self.categories: dict[str, str] = {}
        self.subcategories: dict[str, str] = {}
        self.loaded = False

    def ensure_loaded(self) -> "LookupCache":
        if self.loaded:
            return self
        try:
            if self.visible_only:
                subs = self.client.get_visible_subcategories()
                self.subcategories = _name_map(
                    pick_array(subs, keys=("subcategories", "data", "items")),
                    ("original_subcategory_id", "subcategory_id", "id"),
                    ("subcategory_name", "name"),
                )
            else:
                cats = self.client.get_categories()
                subs = self.client.get_subcategories()
                self.categories = _name_map(
                    pick_array(cats, keys=("categories", "data", "items")),
                    ("category_id", "id"),
                    ("category_name", "name"),
                )
                self.subcategories = _name_map(
                    pick_array(subs, keys=("subcategories", "data", "items")),
                    ("subcategory_id", "id"),
                    ("subcategory_name", "name"),
                )
            logger.info("Lookups loaded: %d categories, %d subcategories",
                        len(self.categories), len(self.subcategories))
        except BackendError as e:
            logger.error("Lookup load failed: %s", e)
        self.loaded = True
        return self

    def invalidate(self) -> None:
        self.categories = {}
        self.subcategories = {}
        self.loaded = False

    def category_name(self, category_id: Any) -> Optional[str]:
        return None if category_id is None else self.categories.get(str(category_id))

    def subcategory_name(self, subcategory_id: Any) -> Optional[str]:
        return None if subcategory_id is None else self.subcategories.get(str(subcategory_id))
