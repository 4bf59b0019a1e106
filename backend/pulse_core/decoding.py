"""Oracle price update decoding.

The oracle publishes fixed-point values: an integer mantissa, an integer
confidence mantissa and a shared power-of-ten exponent. Decoded values are

    price      = mantissa * 10 ** expo
    confidence = conf     * 10 ** expo

computed in float64, the same arithmetic the thresholds downstream were
tuned against. Mantissas arrive either as JSON numbers or as strings.

Record shapes accepted::

    {"id": "...", "price": {"price": "685000000000", "conf": "50000000",
                            "expo": -8, "publish_time": 1700000000}}

    {"type": "price_update", "price_feed": {<record as above>}}

The mantissa field name is configurable: Hermes uses ``price``, the
generic contract uses ``mantissa``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from pulse_core.errors import DecodeError
from pulse_core.models import PriceUpdate

DEFAULT_MANTISSA_FIELD = "price"


def _to_number(value: Any, name: str) -> float:
    """Convert a JSON number or numeric string to float."""
    # bool is an int subclass; it is never a valid price field
    if isinstance(value, bool):
        raise DecodeError(f"{name} must be numeric, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise DecodeError(f"{name} is not numeric: {value!r}") from None
    raise DecodeError(f"{name} must be numeric, got {type(value).__name__}")


def scale(mantissa: float, expo: float) -> float:
    """Apply a power-of-ten exponent to a mantissa."""
    return mantissa * math.pow(10.0, expo)


def decode_price_update(
    record: Mapping[str, Any],
    mantissa_field: str = DEFAULT_MANTISSA_FIELD,
) -> PriceUpdate:
    """Decode one raw oracle record into a PriceUpdate.

    Raises:
        DecodeError: If the record is malformed or yields a non-finite value.
    """
    if not isinstance(record, Mapping):
        raise DecodeError(f"record must be an object, got {type(record).__name__}")

    if "price_feed" in record:
        record = record["price_feed"]
        if not isinstance(record, Mapping):
            raise DecodeError("price_feed must be an object")

    feed_id = record.get("id")
    if not isinstance(feed_id, str) or not feed_id:
        raise DecodeError(f"missing feed id in record: {record!r}")

    price_obj = record.get("price")
    if not isinstance(price_obj, Mapping):
        raise DecodeError(f"feed {feed_id}: missing price object")

    try:
        mantissa = _to_number(price_obj[mantissa_field], mantissa_field)
        conf = _to_number(price_obj["conf"], "conf")
        expo = _to_number(price_obj["expo"], "expo")
        publish_time = _to_number(price_obj["publish_time"], "publish_time")
    except KeyError as e:
        raise DecodeError(f"feed {feed_id}: missing field {e.args[0]!r}") from None
    except DecodeError as e:
        raise DecodeError(f"feed {feed_id}: {e}") from None

    try:
        price = scale(mantissa, expo)
        confidence = scale(conf, expo)
    except OverflowError:
        raise DecodeError(f"feed {feed_id}: exponent {expo} out of range") from None

    if not (math.isfinite(price) and math.isfinite(confidence) and math.isfinite(publish_time)):
        raise DecodeError(f"feed {feed_id}: non-finite value in update")

    return PriceUpdate(
        feed_id=feed_id,
        price=price,
        confidence=confidence,
        timestamp=int(publish_time),
    )


def extract_price_records(message: Any) -> list[Mapping[str, Any]]:
    """Pull the price records out of one oracle message.

    Handles the WebSocket envelope (``type: price_update``), the batch form
    used by the pull and SSE endpoints (``parsed: [...]``) and bare
    records. Control messages such as subscription acks yield nothing.
    """
    if not isinstance(message, Mapping):
        return []

    if "parsed" in message:
        parsed = message["parsed"]
        if not isinstance(parsed, list):
            return []
        return [r for r in parsed if isinstance(r, Mapping)]

    msg_type = message.get("type")
    if msg_type == "price_update":
        feed = message.get("price_feed")
        return [feed] if isinstance(feed, Mapping) else []
    if msg_type is not None:
        return []

    if "id" in message and "price" in message:
        return [message]
    return []
