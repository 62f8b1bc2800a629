"""
Collaborator interfaces and their JSON-file implementations.

The automation reads pending orders, users and menus, and writes stats and
the chosen callee. Each concern is a Protocol so the runner does not care
where the data lives; the JSON stores below keep everything in DATA_DIR:

    orders.json  - [{"identity", "restaurant", "items": [[name, [options]]], "isDonor"}]
    users.json   - {identity: {"name", "phone", "slackId"}}
    menus.json   - [{"name", "minimum", "items": [{"name", "price", "optionSets": [...]}]}]
    stats.json   - {identity: {"calls", "restaurants": {name: {"dollars", "items": {item: n}}}}}

Thread Safety:
    - Every store guards its file with a threading.Lock
    - Writes go to a temporary file that replaces the original
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from core.exceptions import CatalogError, UserNotFoundError
from logging_config import get_logger
from models.order import ItemSelection, OrderBatch, ParticipantOrder, User
from modules.fuzzy_matcher import match_text


logger = get_logger(__name__)


# =============================================================================
# PROTOCOLS
# =============================================================================

class OrderSource(Protocol):
    def get_pending_orders_grouped_by_restaurant(self) -> List[OrderBatch]:
        ...

    def set_callee(self, identity: str) -> None:
        ...


class UserDirectory(Protocol):
    def get_user(self, identity: str) -> User:
        ...


class MenuCatalog(Protocol):
    def get_menu(self, restaurant: str) -> Dict[str, Any]:
        ...


class StatsRecorder(Protocol):
    def record(
        self,
        identity: str,
        restaurant: str,
        amount_spent: Decimal,
        items: Sequence[ItemSelection],
        was_callee: bool,
    ) -> None:
        ...


# =============================================================================
# JSON FILE HELPERS
# =============================================================================

def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise


# =============================================================================
# MENU CATALOG
# =============================================================================

class JsonMenuCatalog:
    """
    Menu catalog backed by menus.json, written by the menu scraping job.

    Read-only during a run.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _menus(self) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                data = _read_json(self.path, [])
            except json.JSONDecodeError as e:
                raise CatalogError(f"Menu catalog {self.path} is not valid JSON: {e}")
        if isinstance(data, dict):
            # {name: menu} form
            data = [dict(menu, name=name) for name, menu in data.items()]
        if not isinstance(data, list):
            raise CatalogError(f"Menu catalog {self.path} must hold a list of restaurants")
        return data

    def restaurant_names(self) -> List[str]:
        return [menu.get("name", "") for menu in self._menus()]

    def get_menu(self, restaurant: str) -> Dict[str, Any]:
        """
        Return the menu of the restaurant with exactly this name.

        Raises:
            CatalogError: If the restaurant is not in the catalog
        """
        for menu in self._menus():
            if menu.get("name") == restaurant:
                return menu
        raise CatalogError(f"Restaurant {restaurant} is not in the menu catalog")

    def find_restaurant(self, name: str) -> Optional[str]:
        """Fuzzy-resolve a free-text restaurant name to its catalog name."""
        return match_text(self.restaurant_names(), name)

    def find_item(self, restaurant: str, item_name: str) -> Optional[Dict[str, Any]]:
        """Fuzzy-resolve a free-text item name on a restaurant's menu."""
        items = self.get_menu(restaurant).get("items", [])
        found = match_text((item.get("name", "") for item in items), item_name)
        if found is None:
            return None
        return next(item for item in items if item.get("name", "") == found)


# =============================================================================
# ORDERS
# =============================================================================

def group_orders_by_restaurant(
    orders: Iterable[Dict[str, Any]],
    resolve_restaurant=None,
) -> List[OrderBatch]:
    """
    Group raw pending orders into one OrderBatch per restaurant.

    Restaurants are resolved through ``resolve_restaurant`` (free text ->
    catalog name) when given; orders it cannot resolve keep their own name.
    Batches and participants keep first-seen order. A participant who
    ordered twice from the same restaurant is merged into one entry.
    """
    grouped: Dict[str, List[ParticipantOrder]] = {}
    for order in orders:
        raw_name = order.get("restaurant", "")
        restaurant = (resolve_restaurant(raw_name) if resolve_restaurant else None) or raw_name
        participant = ParticipantOrder.from_dict(order)

        participants = grouped.setdefault(restaurant, [])
        for index, existing in enumerate(participants):
            if existing.identity == participant.identity:
                participants[index] = ParticipantOrder(
                    identity=existing.identity,
                    items=existing.items + participant.items,
                    is_donor=existing.is_donor and participant.is_donor,
                )
                break
        else:
            participants.append(participant)

    return [OrderBatch.of(restaurant, participants) for restaurant, participants in grouped.items()]


class JsonOrderStore:
    """Pending orders for today, backed by orders.json."""

    def __init__(self, path: Path, catalog: Optional[JsonMenuCatalog] = None):
        self.path = Path(path)
        self.catalog = catalog
        self._lock = threading.Lock()

    def get_pending_orders(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(_read_json(self.path, []))

    def get_pending_orders_grouped_by_restaurant(self) -> List[OrderBatch]:
        resolve = self.catalog.find_restaurant if self.catalog is not None else None
        batches = group_orders_by_restaurant(self.get_pending_orders(), resolve)
        logger.info(f"{len(batches)} restaurant batch(es) pending")
        return batches

    def set_callee(self, identity: str) -> None:
        """Mark ``identity``'s pending order as the one whose owner takes the call."""
        with self._lock:
            orders = _read_json(self.path, [])
            for order in orders:
                if order.get("identity", order.get("username")) == identity:
                    order["isCallee"] = True
            _write_json(self.path, orders)


# =============================================================================
# USERS
# =============================================================================

class JsonUserDirectory:
    """Registered users, backed by users.json."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def get_user(self, identity: str) -> User:
        """
        Raises:
            UserNotFoundError: If ``identity`` never registered
        """
        with self._lock:
            users = _read_json(self.path, {})
        data = users.get(identity)
        if not data:
            raise UserNotFoundError(identity)
        return User.from_dict(identity, data)

    def mention(self, identity: str) -> str:
        """Chat mention for ``identity``: ``<@ID>`` when the chat ID is known, else ``@identity``."""
        try:
            user = self.get_user(identity)
        except UserNotFoundError:
            return f"@{identity}"
        return f"<@{user.chat_id}>" if user.chat_id else f"@{identity}"


# =============================================================================
# STATS
# =============================================================================

class JsonStatsRecorder:
    """
    Per-user ordering stats, backed by stats.json.

    Each record adds the amount spent at the restaurant, counts every item
    ordered, and counts a call when the user was the callee.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def record(
        self,
        identity: str,
        restaurant: str,
        amount_spent: Decimal,
        items: Sequence[ItemSelection],
        was_callee: bool,
    ) -> None:
        with self._lock:
            stats = _read_json(self.path, {})
            user_stats = stats.setdefault(identity, {"calls": 0, "restaurants": {}})
            restaurant_stats = user_stats["restaurants"].setdefault(restaurant, {"dollars": 0.0, "items": {}})

            restaurant_stats["dollars"] = round(restaurant_stats["dollars"] + float(amount_spent or 0), 2)
            for item in items:
                restaurant_stats["items"][item.item_name] = restaurant_stats["items"].get(item.item_name, 0) + 1
            if was_callee:
                user_stats["calls"] += 1

            _write_json(self.path, stats)

    def get(self, identity: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return _read_json(self.path, {}).get(identity)

    def total_dollars(self, identity: str) -> float:
        user_stats = self.get(identity) or {"restaurants": {}}
        return round(sum(r["dollars"] for r in user_stats["restaurants"].values()), 2)
