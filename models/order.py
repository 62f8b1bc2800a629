"""
Order data models.

These models represent the day's pending lunch orders as the automation
consumes them: one OrderBatch per restaurant, each holding the
ParticipantOrders of everyone eating (or paying) from that restaurant.

Thread Safety:
    - All order models are frozen dataclasses (immutable)
    - A batch is created once by the order source and never mutated,
      so it can be handed to a run thread without copying
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Sequence, Tuple


@dataclass(frozen=True)
class ItemSelection:
    """
    One menu item requested by a participant.

    Names are free text as typed in chat. They are resolved against the
    live ordering website at submission time, not when the order is taken.
    """

    item_name: str
    """Free-text item name (e.g., 'cheese pizza')."""

    options: FrozenSet[str] = field(default_factory=frozenset)
    """Free-text option names (e.g., {'extra cheese', 'large'})."""

    def to_list(self) -> List[Any]:
        """Convert to the ``[name, [options]]`` pair used by the JSON stores."""
        return [self.item_name, sorted(self.options)]

    @classmethod
    def from_data(cls, data: Any) -> "ItemSelection":
        """
        Create from a ``[name, [options]]`` pair or an ``{"item_name", "options"}`` dict.
        """
        if isinstance(data, dict):
            return cls(
                item_name=data.get("item_name", data.get("name", "")),
                options=frozenset(data.get("options", [])),
            )
        name, options = data[0], (data[1] if len(data) > 1 else [])
        return cls(item_name=name, options=frozenset(options))

    def describe(self) -> str:
        """Human-readable form, e.g. 'Cheese Pizza (large, extra cheese)'."""
        if self.options:
            return f"{self.item_name} ({', '.join(sorted(self.options))})"
        return self.item_name


@dataclass(frozen=True)
class ParticipantOrder:
    """
    Everything one participant ordered from one restaurant.

    A donor pays into the batch total without eating from it. Donors are
    never chosen as callee, are not listed as participants in notifications,
    and get no per-item stats.
    """

    identity: str
    """Opaque user key (the chat username)."""

    items: Tuple[ItemSelection, ...] = ()
    """Requested items, in the order they were captured."""

    is_donor: bool = False
    """True if this participant only contributes budget."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "items": [item.to_list() for item in self.items],
            "isDonor": self.is_donor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParticipantOrder":
        return cls(
            identity=data.get("identity", data.get("username", "")),
            items=tuple(ItemSelection.from_data(i) for i in data.get("items", [])),
            is_donor=bool(data.get("isDonor", data.get("is_donor", False))),
        )


@dataclass(frozen=True)
class OrderBatch:
    """
    All participant orders destined for one restaurant in one run.

    The restaurant is the catalog name the order source resolved the
    participants' free text to. Participant order is preserved; it decides
    the order items are added to the cart and names are entered.
    """

    restaurant: str
    participants: Tuple[ParticipantOrder, ...] = ()

    @property
    def eligible_participants(self) -> Tuple[ParticipantOrder, ...]:
        """Non-donor participants, the only ones who can be callee."""
        return tuple(p for p in self.participants if not p.is_donor)

    @property
    def identities(self) -> List[str]:
        return [p.identity for p in self.participants]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restaurant": self.restaurant,
            "participants": [p.to_dict() for p in self.participants],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderBatch":
        return cls(
            restaurant=data["restaurant"],
            participants=tuple(ParticipantOrder.from_dict(p) for p in data.get("participants", [])),
        )

    @classmethod
    def of(cls, restaurant: str, participants: Sequence[ParticipantOrder]) -> "OrderBatch":
        """Build a batch from any sequence of participant orders."""
        return cls(restaurant=restaurant, participants=tuple(participants))


@dataclass(frozen=True)
class User:
    """A registered user as returned by the user directory."""

    identity: str
    display_name: str
    """Name as registered on the ordering website's cost-split list."""

    phone: str

    chat_id: str = ""
    """Chat platform user ID, used for @-mentions when known."""

    @classmethod
    def from_dict(cls, identity: str, data: Dict[str, Any]) -> "User":
        return cls(
            identity=identity,
            display_name=data.get("name", data.get("display_name", "")),
            phone=data.get("phone", ""),
            chat_id=data.get("slackId", data.get("chat_id", "")) or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.display_name, "phone": self.phone, "slackId": self.chat_id}
