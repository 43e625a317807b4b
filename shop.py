"""
XP shop catalog. Static content, identical for every user.
"""
from typing import Dict, List, Optional

from errors import ItemNotFound
from schemas import ShopItem

DEFAULT_THEME = "theme-light"
DEFAULT_TITLE = "title-novice"

SHOP_ITEMS: List[ShopItem] = [
    # Themes
    ShopItem(id="theme-light", name="Standard Light", type="theme", cost=0, description="Default bright theme.", icon="Sun"),
    ShopItem(id="theme-dracula", name="Dracula", type="theme", cost=300, description="A dark theme for vampires.", icon="Moon"),
    ShopItem(id="theme-monokai", name="Monokai", type="theme", cost=400, description="Vibrant and contrasty.", icon="Palette"),
    ShopItem(id="theme-nord", name="Nord", type="theme", cost=450, description="An arctic, north-bluish palette.", icon="Snowflake"),
    ShopItem(id="theme-matrix", name="The Matrix", type="theme", cost=500, description="Green code raining down.", icon="Terminal"),
    ShopItem(id="theme-cyberpunk", name="Cyberpunk 2077", type="theme", cost=1000, description="Neon pinks and deep blues.", icon="Zap"),
    # Titles
    ShopItem(id="title-novice", name="Novice", type="title", cost=0, description="The journey begins.", icon="Sprout"),
    ShopItem(id="title-bug-hunter", name="Bug Hunter", type="title", cost=200, description="Squashing bugs for fun.", icon="Bug"),
    ShopItem(id="title-stack-overflow", name="Stack Overflow VIP", type="title", cost=500, description="Ctrl+C, Ctrl+V expert.", icon="Copy"),
    ShopItem(id="title-algo-wizard", name="Algo Wizard", type="title", cost=800, description="Master of complexity.", icon="Wand"),
    ShopItem(id="title-senior-dev", name="10x Engineer", type="title", cost=2000, description="Highly efficient.", icon="Rocket"),
    ShopItem(id="title-architect", name="System Architect", type="title", cost=5000, description="Draws boxes and arrows.", icon="Ruler"),
]

_BY_ID: Dict[str, ShopItem] = {item.id: item for item in SHOP_ITEMS}


def list_items() -> List[ShopItem]:
    return list(SHOP_ITEMS)


def get_item(item_id: str) -> ShopItem:
    item = _BY_ID.get(item_id)
    if item is None:
        raise ItemNotFound(f"Item not found: {item_id}")
    return item


def display_name(item_id: str) -> str:
    item = _BY_ID.get(item_id)
    return item.name if item else item_id


def find_item_id(value: str, item_type: str) -> Optional[str]:
    """Catalog id for an id, a bare key ("dracula") or a display name ("Bug Hunter")."""
    if value in _BY_ID:
        return value
    for item in SHOP_ITEMS:
        if item.type == item_type and (item.id == f"{item_type}-{value}" or item.name == value):
            return item.id
    return None
