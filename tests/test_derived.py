from __future__ import annotations

from typing import Any

import pytest

from tagix.store import create_store, derive_store
from tagix.tagged_enum import tagged_enum

Cart = tagged_enum({"Empty": {}, "Filled": {"total": 0}})
Discount = tagged_enum({"NoDiscount": {}, "Percent": {"rate": 0}})


def _total(states: tuple[Any, ...]) -> int:
    cart, discount = states
    total = getattr(cart, "total", 0)
    rate = getattr(discount, "rate", 0)
    return total - total * rate // 100


def _stores() -> tuple[Any, Any]:
    cart = create_store(Cart.Empty(), Cart)
    cart.register("Fill", lambda s, p: Cart.Filled(total=p))
    discount = create_store(Discount.NoDiscount(), Discount)
    discount.register("Set", lambda s, p: Discount.Percent(rate=p))
    return cart, discount


def test_derived_value_follows_every_source() -> None:
    cart, discount = _stores()
    total = derive_store(cart, discount, deriver=_total)

    assert total.state == 0
    cart.dispatch("Fill", 200)
    assert total.state == 200
    discount.dispatch("Set", 25)
    assert total.state == 150


def test_subscribe_fires_immediately_then_only_on_change() -> None:
    cart, discount = _stores()
    total = derive_store(cart, discount, deriver=_total)
    seen: list[int] = []

    total.subscribe(seen.append)
    cart.dispatch("Fill", 100)
    cart.dispatch("Fill", 100)
    discount.dispatch("Set", 0)

    assert seen == [0, 100]


def test_custom_equals_controls_notification() -> None:
    cart, _ = _stores()
    rounded = derive_store(
        cart,
        deriver=lambda states: getattr(states[0], "total", 0),
        equals=lambda a, b: a // 10 == b // 10,
    )
    seen: list[int] = []
    rounded.subscribe(seen.append)

    cart.dispatch("Fill", 5)
    cart.dispatch("Fill", 12)

    assert seen == [0, 12]
    assert rounded.state == 12


def test_recompute_error_is_raised_once_on_read() -> None:
    cart, _ = _stores()

    def strict_total(states: tuple[Any, ...]) -> int:
        total = getattr(states[0], "total", 0)
        if total < 0:
            raise ValueError("negative total")
        return total

    derived = derive_store(cart, deriver=strict_total)
    cart.dispatch("Fill", 10)
    cart.dispatch("Fill", -1)

    with pytest.raises(ValueError, match="negative total"):
        _ = derived.state
    assert derived.state == 10

    cart.dispatch("Fill", 3)
    assert derived.state == 3
    assert derived.last_error is None


def test_destroy_stops_following_and_is_idempotent() -> None:
    cart, discount = _stores()
    total = derive_store(cart, discount, deriver=_total)
    seen: list[int] = []
    total.subscribe(seen.append)

    total.destroy()
    total.destroy()
    cart.dispatch("Fill", 50)

    assert total.destroyed
    assert total.state == 0
    assert seen == [0]
    assert cart.subscriber_count == 0
    assert discount.subscriber_count == 0
    assert total.subscriber_count == 0


def test_derive_store_needs_a_source() -> None:
    with pytest.raises(ValueError):
        derive_store(deriver=lambda states: None)
