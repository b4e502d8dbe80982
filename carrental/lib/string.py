import re
import secrets
import string
import time
from decimal import Decimal, ROUND_HALF_UP

import const

BASE36_ALPHABET = string.digits + string.ascii_lowercase


def generate_tx_ref(prefix=const.TX_REF_PREFIX):
    """Correlation id for one payment attempt: prefix, epoch millis, random suffix."""
    millis = int(time.time() * 1000)
    suffix = "".join(
        secrets.choice(BASE36_ALPHABET) for _ in range(const.TX_REF_RANDOM_LENGTH)
    )
    raw_id = f"{prefix}-{millis}-{suffix}"
    return re.sub(r"[^a-zA-Z0-9_-]", "", raw_id)


def split_full_name(full_name):
    parts = (full_name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], parts[0]
    return parts[0], parts[1]


def to_money(value):
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(const.MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def format_money(value):
    return "{:.2f}".format(to_money(value))


def normalize_phone(phone):
    return re.sub(r"\s+", "", phone or "")
