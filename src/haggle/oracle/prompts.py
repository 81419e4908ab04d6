"""Prompt and action-control templates for Decision Oracle calls.

Each oracle call sends a natural-language ``message`` plus an ``actionControl``
directive that pins the reply to a single JSON value of a fixed shape.
Templates use Python string placeholders ({variable_name}).

The seller's floor price may appear in seller prompts only.  Buyer templates
have no placeholder for it.
"""

from __future__ import annotations

from decimal import Decimal

BUYER_OPEN_MESSAGE = """Listing: "{title}", asking price {list_price}. \
As a buyer, are you interested in this item? If you are, suggest an opening \
bid. If not, explain why."""

BUYER_OPEN_CONTROL = """Output valid JSON only, no explanation.
Shape: {{"suggestedPrice": number, "reason": string}}.
If interested: suggestedPrice is your opening bid (greater than 0), reasonably \
below the asking price; reason is a short justification.
If not interested: suggestedPrice is 0 and reason explains why."""

SELLER_MESSAGE = """Your listing "{title}" is priced at {list_price}{floor_clause}. \
A buyer offers {offer_price}. Decide: accept, counter, or reject."""

SELLER_FLOOR_CLAUSE = ", and the lowest price you would accept is {min_price}"

SELLER_CONTROL = """Output valid JSON only, no explanation.
Shape: {{"decision": "accept"|"counter"|"reject", "counterPrice": number or omitted, \
"reason": string}}.
accept means you take the current offer; counter means you propose another \
price and counterPrice is required; reject means you decline."""

BUYER_COUNTER_MESSAGE = """You want to buy "{title}", listed at {list_price}. \
The seller counters at {seller_counter_price}. Decide: accept, counter, or give up."""

BUYER_COUNTER_CONTROL = """Output valid JSON only, no explanation.
Shape: {{"decision": "accept"|"counter"|"reject", "counterPrice": number or omitted, \
"reason": string}}.
accept means you take the seller's price; counter means you propose another \
price and counterPrice is required; reject means you walk away."""

PICK_MESSAGE = """You are browsing a secondhand market. These items are for sale:
{listing}

Based on your interests and needs, pick the items you would like to negotiate on."""

PICK_LINE = "{index}. [{id}] {title} {price} ({category}, {condition})"

PICK_CONTROL = """Output valid JSON only, no explanation.
Shape: {{"picks": [{{"id": string, "reason": string}}]}}.
picks lists the ids you are interested in with a short reason. If nothing \
interests you, return {{"picks": []}}."""


def format_price(value: Decimal) -> str:
    """Render a price without trailing zeros (``80.00`` -> ``80``)."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def buyer_open_prompt(title: str, list_price: Decimal) -> tuple[str, str]:
    """Build the (message, actionControl) pair for an opening bid."""
    message = BUYER_OPEN_MESSAGE.format(title=title, list_price=format_price(list_price))
    return message, BUYER_OPEN_CONTROL


def seller_prompt(
    title: str,
    list_price: Decimal,
    min_price: Decimal | None,
    offer_price: Decimal,
) -> tuple[str, str]:
    """Build the (message, actionControl) pair for a seller decision."""
    floor_clause = ""
    if min_price is not None:
        floor_clause = SELLER_FLOOR_CLAUSE.format(min_price=format_price(min_price))
    message = SELLER_MESSAGE.format(
        title=title,
        list_price=format_price(list_price),
        floor_clause=floor_clause,
        offer_price=format_price(offer_price),
    )
    return message, SELLER_CONTROL


def buyer_counter_prompt(
    title: str,
    list_price: Decimal,
    seller_counter_price: Decimal,
) -> tuple[str, str]:
    """Build the (message, actionControl) pair for a buyer's answer to a counter."""
    message = BUYER_COUNTER_MESSAGE.format(
        title=title,
        list_price=format_price(list_price),
        seller_counter_price=format_price(seller_counter_price),
    )
    return message, BUYER_COUNTER_CONTROL


def pick_prompt(candidates: list[dict[str, str]]) -> tuple[str, str]:
    """Build the (message, actionControl) pair for a market scan shortlist.

    Args:
        candidates: Pre-rendered listing fields (``id``, ``title``, ``price``,
            ``category``, ``condition``) in display order.
    """
    listing = "\n".join(
        PICK_LINE.format(index=i, **candidate) for i, candidate in enumerate(candidates, start=1)
    )
    return PICK_MESSAGE.format(listing=listing), PICK_CONTROL
