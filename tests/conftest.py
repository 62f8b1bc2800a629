"""
Shared fixtures: a scripted ordering website and in-memory collaborators.

FakeSurface implements the AutomationSurface protocol against an in-memory
model of the GRUBHUB profile's pages. It keeps a cart, the cost-split rows
and the filled-in checkout fields, and can be told to fail a given action
a number of times.
"""

from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from config import AutomationConfig
from core.exceptions import SurfaceTimeoutError, UserNotFoundError
from core.site_profile import GRUBHUB, SEAMLESS
from core.surface import Candidate
from models.order import ItemSelection, OrderBatch, ParticipantOrder, User
from modules.callee import CalleeSelector


class FakeSurface:
    """In-memory ordering website driven through the GRUBHUB selectors."""

    def __init__(
        self,
        menus: Dict[str, Dict[str, Decimal]],
        options: Optional[Dict[str, List[str]]] = None,
        minimum: Decimal = Decimal("0"),
        site=GRUBHUB,
    ):
        self.menus = menus
        self.options = options or {}
        self.minimum = minimum
        self.site = site

        self.allocation_amounts: Optional[List[Decimal]] = None
        self.failures: Dict[Tuple[str, str], int] = {}

        self.cart: List[Tuple[str, Decimal, Tuple[str, ...]]] = []
        self.restaurant: Optional[str] = None
        self.dialog_item: Optional[str] = None
        self.dialog_options: List[str] = []
        self.focus: Optional[str] = None
        self.typed = ""
        self.entered: List[str] = []
        self.filled: Dict[str, str] = {}
        self.clicks: List[str] = []
        self.visits: List[str] = []
        self.pauses: List[float] = []
        self.selected: Dict[str, str] = {}
        self.scripts: List[str] = []
        self.pdfs: List[Path] = []
        self.submitted = 0
        self.logged_in = False

    # -- scripting ------------------------------------------------------------

    def fail(self, action: str, target: str, times: int = 1) -> None:
        """Make ``action`` on ``target`` time out the next ``times`` times."""
        self.failures[(action, target)] = times

    def _maybe_fail(self, action: str, target) -> None:
        key = (action, target if isinstance(target, str) else str(target))
        remaining = self.failures.get(key, 0)
        if remaining:
            self.failures[key] = remaining - 1
            raise SurfaceTimeoutError(action, 30000, target=key[1])

    @property
    def subtotal(self) -> Decimal:
        return sum((price for _, price, _ in self.cart), Decimal("0.00"))

    def _allocations(self) -> List[Decimal]:
        if self.allocation_amounts is not None:
            return list(self.allocation_amounts)
        if not self.entered:
            return []
        share = (self.subtotal / len(self.entered)).quantize(Decimal("0.01"))
        return [share] * len(self.entered)

    # -- AutomationSurface ------------------------------------------------------

    def navigate(self, url: str) -> None:
        self._maybe_fail("navigate", url)
        self.visits.append(url)
        self.focus = None
        self.entered = []

    def click(self, target) -> None:
        self._maybe_fail("click", target)
        site = self.site
        self.clicks.append(str(target))

        if isinstance(target, str) and ":" in target and target.split(":", 1)[0] in ("restaurant", "item", "option"):
            kind, name = target.split(":", 1)
            if kind == "restaurant":
                self.restaurant = name
            elif kind == "item":
                self.dialog_item = name
                self.dialog_options = []
            else:
                self.dialog_options.append(name)
            return

        if target == site.login_submit:
            self.logged_in = True
        elif target == site.search_input:
            self.focus = "search"
            self.typed = ""
        elif target == site.item_add:
            price = self.menus[self.restaurant][self.dialog_item]
            self.cart.append((self.dialog_item, price, tuple(self.dialog_options)))
            self.dialog_item = None
        elif target == site.cart_item_remove:
            self.cart.pop()
        elif target == site.allocation_input:
            self.focus = "allocation"
            self.typed = ""
        elif target == site.allocation_suggestion:
            self.entered.append(self.typed)
        elif target == site.submit_order:
            self.submitted += 1

    def type_text(self, text: str) -> None:
        self.typed += text

    def fill(self, target, text: str) -> None:
        self._maybe_fail("fill", target)
        self.filled[target] = text

    def read_text(self, target) -> str:
        if target == self.site.cart_subtotal:
            return f"${self.subtotal:.2f}"
        return ""

    def read_all(self, selector: str) -> List[Candidate]:
        self._maybe_fail("read_all", selector)
        site = self.site
        if selector == site.search_result:
            return [Candidate(name, f"restaurant:{name}") for name in self.menus]
        if selector == site.menu_item_name:
            return [Candidate(name, f"item:{name}") for name in self.menus.get(self.restaurant, {})]
        if selector == site.item_option:
            return [Candidate(name, f"option:{name}") for name in self.options.get(self.dialog_item, [])]
        if selector == site.allocation_amount:
            rows = [f"${amount:.2f}" for amount in self._allocations()] + ["$0.00"]
            return [Candidate(text, None) for text in rows]
        return []

    def read_values(self, selector: str) -> List[str]:
        return []

    def run_script(self, script: str):
        self.scripts.append(script)

    def select_option(self, selector: str, value: str) -> None:
        self._maybe_fail("select_option", selector)
        self.selected[selector] = value

    def wait_for(self, selector: str, state: str = "visible", timeout_ms=None) -> None:
        self._maybe_fail("wait_for", selector)

    def wait_for_load(self, timeout_ms=None) -> None:
        self._maybe_fail("wait_for_load", "")

    def pause(self, ms: float) -> None:
        self.pauses.append(ms)

    def is_enabled(self, selector: str) -> bool:
        if selector == self.site.checkout_button:
            return bool(self.cart) and self.subtotal >= self.minimum
        return True

    def exists(self, selector: str) -> bool:
        site = self.site
        if selector in (site.cart_subtotal, site.cart_item_remove):
            return bool(self.cart)
        return selector in (site.phone_input, site.green_option)

    def get_attribute(self, selector: str, name: str) -> Optional[str]:
        if selector == self.site.instructions_toggle_icon and name == "href":
            return "#plus"
        return None

    def save_pdf(self, path: Path) -> None:
        self._maybe_fail("save_pdf", "")
        self.pdfs.append(Path(path))


class FakeSeamlessSurface(FakeSurface):
    """
    In-memory Seamless website driven through the SEAMLESS selectors.

    Restaurants are picked from a list, the continue button only exists
    once the delivery minimum is met, and cost-split names are added by
    first and last name. ``names`` survive navigation, like names left on
    the checkout page by an earlier attempt.
    """

    def __init__(self, menus, options=None, minimum=Decimal("0")):
        super().__init__(menus, options=options, minimum=minimum, site=SEAMLESS)
        self.names: List[str] = []
        self.name_form: Optional[Dict[str, str]] = None
        self.at_checkout = False

    def navigate(self, url: str) -> None:
        super().navigate(url)
        self.cart = []
        self.at_checkout = False

    def click(self, target) -> None:
        site = self.site
        if target == site.checkout_button:
            self._maybe_fail("click", target)
            self.clicks.append(target)
            if self.at_checkout:
                self.submitted += 1
            self.at_checkout = True
        elif target == site.allocation_delete:
            self.clicks.append(target)
            self.names.pop()
        elif target in (site.first_name_input, site.last_name_input) and self.name_form is not None:
            self.clicks.append(target)
            self.focus = "first" if target == site.first_name_input else "last"
        elif target == site.add_participant_submit and self.name_form is not None:
            self.clicks.append(target)
            self.names.append(f"{self.name_form.get('first', '')} {self.name_form.get('last', '')}")
            self.name_form = None
            self.focus = None
        else:
            super().click(target)

    def type_text(self, text: str) -> None:
        if self.focus in ("first", "last"):
            self.name_form[self.focus] = self.name_form.get(self.focus, "") + text
        else:
            super().type_text(text)

    def run_script(self, script: str):
        super().run_script(script)
        if script == self.site.add_participant_script:
            self.name_form = {}

    def read_all(self, selector: str) -> List[Candidate]:
        if selector == self.site.restaurant_link:
            self._maybe_fail("read_all", selector)
            return [Candidate(name, f"restaurant:{name}") for name in self.menus]
        return super().read_all(selector)

    def read_values(self, selector: str) -> List[str]:
        if selector != self.site.allocation_amount:
            return []
        if self.allocation_amounts is not None:
            return [f"{amount:.2f}" for amount in self.allocation_amounts]
        if not self.names:
            return []
        share = (self.subtotal / len(self.names)).quantize(Decimal("0.01"))
        return [f"{share:.2f}"] * len(self.names)

    def exists(self, selector: str) -> bool:
        site = self.site
        if selector == site.cart_subtotal:
            return bool(self.cart)
        if selector == site.checkout_button:
            return bool(self.cart) and self.subtotal >= self.minimum
        if selector == site.allocation_delete:
            return bool(self.names)
        return selector in (site.phone_input, site.green_option)


class InMemoryUsers:
    """User directory backed by a dict."""

    def __init__(self, users: Dict[str, User]):
        self.users = users

    def get_user(self, identity: str) -> User:
        if identity not in self.users:
            raise UserNotFoundError(identity)
        return self.users[identity]

    def mention(self, identity: str) -> str:
        return f"@{identity}"


class RecordingStats:
    """Stats recorder that remembers every call."""

    def __init__(self):
        self.records = []

    def record(self, identity, restaurant, amount_spent, items, was_callee):
        self.records.append((identity, restaurant, amount_spent, tuple(items), was_callee))


class RecordingNotifier:
    def __init__(self):
        self.published = []

    def publish(self, run):
        self.published.append(run)


def participant(identity: str, *items, is_donor: bool = False) -> ParticipantOrder:
    """ParticipantOrder from item names or (name, [options]) pairs."""
    selections = tuple(
        ItemSelection(item) if isinstance(item, str) else ItemSelection(item[0], frozenset(item[1]))
        for item in items
    )
    return ParticipantOrder(identity=identity, items=selections, is_donor=is_donor)


def first_choice(candidates):
    return candidates[0]


# Fixtures

@pytest.fixture
def users():
    return InMemoryUsers({
        "a": User("a", "Alice Adams", "555-0101", "U01"),
        "b": User("b", "Bob Brown", "555-0102", "U02"),
        "c": User("c", "Cara Chen", "555-0103"),
        "d": User("d", "Dan Donor", "555-0104"),
    })


@pytest.fixture
def surface():
    return FakeSurface(
        menus={
            "Pizza Palace": {
                "Cheese Pizza": Decimal("12.00"),
                "Pepperoni Pizza": Decimal("14.00"),
                "Family Feast": Decimal("30.00"),
            },
            "Thai Garden": {
                "Pad Thai": Decimal("11.50"),
                "Green Curry": Decimal("13.00"),
            },
        },
        options={"Cheese Pizza": ["Large", "Extra Cheese"]},
    )


@pytest.fixture
def seamless_surface():
    return FakeSeamlessSurface(
        menus={
            "Pizza Palace": {
                "Cheese Pizza": Decimal("12.00"),
                "Family Feast": Decimal("30.00"),
            },
        },
        options={"Cheese Pizza": ["Large", "Extra Cheese"]},
    )


@pytest.fixture
def automation_config(tmp_path):
    return AutomationConfig(
        order_time=1730,
        dry_run=True,
        per_person_ceiling=Decimal("25"),
        max_attempts_per_batch=3,
        inter_batch_pause_ms=0,
        confirmations_dir=tmp_path / "confirmations",
    )


@pytest.fixture
def callee_selector():
    return CalleeSelector(choose=first_choice)


@pytest.fixture
def pizza_batch():
    return OrderBatch.of("Pizza Palace", [participant("a", "cheese pizza")])


@pytest.fixture
def stats():
    return RecordingStats()


@pytest.fixture
def notifier():
    return RecordingNotifier()
