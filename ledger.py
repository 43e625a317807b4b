"""
Economy ledger rules.

Two currencies live on one record: ``spendable_xp`` pays for hints and shop
items, ``lifetime_xp`` only ever grows through credits and drives the rank.
Every function here mutates the ledger it is given and either fully applies
or raises before touching anything.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from errors import AlreadyOwned, InsufficientBalance, NotOwned
from schemas import EconomyLedger, ShopItem, utcnow
from shop import DEFAULT_THEME, DEFAULT_TITLE, display_name, find_item_id

# Field names used by progress records written before the ledger collection
LEGACY_FIELDS = {"userId": "user_id", "lifetimeXP": "lifetime_xp", "lastActivity": "last_activity"}


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError("amount must be >= 0")


def new_ledger(user_id: str, now: Optional[datetime] = None) -> EconomyLedger:
    now = now or utcnow()
    return EconomyLedger(user_id=user_id, last_activity=now)


def ledger_from_document(doc: Dict[str, Any]) -> EconomyLedger:
    """Build a ledger from a stored document, filling fields older records lack."""
    data = {k: v for k, v in doc.items() if k not in ("_id", "__v")}
    for old, new in LEGACY_FIELDS.items():
        if old in data:
            value = data.pop(old)
            data.setdefault(new, value)
    if "spendable_xp" not in data:
        data["spendable_xp"] = max(0, data.pop("xp", 0) or 0)
    if data.get("lifetime_xp") is None:
        data["lifetime_xp"] = data["spendable_xp"]
    inventory = list(data.get("inventory") or [])
    for default in (DEFAULT_THEME, DEFAULT_TITLE):
        if default not in inventory:
            inventory.append(default)
    data["inventory"] = inventory
    equipped = dict(data.get("equipped") or {})
    # Old records stored "light" or a display name instead of the item id
    for slot, default in (("theme", DEFAULT_THEME), ("title", DEFAULT_TITLE)):
        item_id = find_item_id(equipped.get(slot), slot)
        equipped[slot] = item_id if item_id in inventory else default
    data["equipped"] = equipped
    return EconomyLedger(**data)


def touch_activity(ledger: EconomyLedger, now: Optional[datetime] = None) -> EconomyLedger:
    """Advance the daily streak by calendar day and stamp the activity time."""
    now = now or utcnow()
    days = (now.date() - ledger.last_activity.date()).days
    if days == 1:
        ledger.streak += 1
    elif days > 1:
        ledger.streak = 1
    ledger.last_activity = now
    return ledger


def credit(ledger: EconomyLedger, amount: int) -> EconomyLedger:
    _check_amount(amount)
    ledger.spendable_xp += amount
    ledger.lifetime_xp += amount
    return ledger


def debit(ledger: EconomyLedger, amount: int) -> EconomyLedger:
    """Spend from the balance only. Rank is unaffected."""
    _check_amount(amount)
    if ledger.spendable_xp < amount:
        raise InsufficientBalance(amount, ledger.spendable_xp)
    ledger.spendable_xp -= amount
    return ledger


def penalize(ledger: EconomyLedger, amount: int) -> EconomyLedger:
    _check_amount(amount)
    ledger.spendable_xp = max(0, ledger.spendable_xp - amount)
    ledger.lifetime_xp = max(0, ledger.lifetime_xp - amount)
    return ledger


def purchase(ledger: EconomyLedger, item: ShopItem) -> EconomyLedger:
    if item.id in ledger.inventory:
        raise AlreadyOwned(f"Already owned: {item.id}")
    debit(ledger, item.cost)
    ledger.inventory.append(item.id)
    return ledger


def equip(ledger: EconomyLedger, item: ShopItem) -> EconomyLedger:
    if item.id not in ledger.inventory:
        raise NotOwned(f"You do not own this item: {item.id}")
    setattr(ledger.equipped, item.type, item.id)
    return ledger


def summary(ledger: EconomyLedger) -> Dict[str, Any]:
    return {
        "user_id": ledger.user_id,
        "spendable_xp": ledger.spendable_xp,
        "lifetime_xp": ledger.lifetime_xp,
        "rank": ledger.rank,
        "rank_progress": ledger.rank_progress,
        "streak": ledger.streak,
        "inventory": list(ledger.inventory),
        "equipped": ledger.equipped.model_dump(),
        "equipped_title_name": display_name(ledger.equipped.title),
    }
