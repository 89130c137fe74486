"""JSON codec for tool-call arguments.

Arguments cross both wire boundaries as JSON-encoded strings. Numbers with a
fraction or exponent are decoded as :class:`~decimal.Decimal` and written back
with their exact digits, so values such as ``1e400`` survive a decode/encode
cycle instead of degrading to a float (or to the non-JSON token ``Infinity``).
"""

import json
import uuid
from decimal import Decimal
from typing import Any


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def decode_arguments(raw: str) -> Any:
    """Decode a JSON argument string. Blank input is an empty object.

    Raises:
        ValueError: If ``raw`` is not valid JSON (``NaN`` and ``Infinity``
            included)
    """
    if not raw.strip():
        return {}
    return json.loads(raw, parse_float=Decimal, parse_constant=_reject_constant)


def encode_arguments(arguments: Any) -> str:
    """Encode decoded arguments back into a JSON string.

    Raises:
        ValueError: If ``arguments`` holds a non-finite number
    """
    marker = uuid.uuid4().hex
    numbers: list[str] = []

    # Decimals are emitted as unique string placeholders, then spliced in raw
    def _placeholder(value: Any) -> str:
        if not isinstance(value, Decimal):
            raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
        if not value.is_finite():
            raise ValueError(f"Out of range number in arguments: {value}")
        numbers.append(str(value))
        return f"{marker}:{len(numbers) - 1}"

    encoded = json.dumps(arguments, ensure_ascii=False, allow_nan=False, default=_placeholder)
    for index, number in enumerate(numbers):
        encoded = encoded.replace(f'"{marker}:{index}"', number, 1)
    return encoded
