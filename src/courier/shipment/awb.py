"""AWB (air waybill) numbers: ``FX`` + ``YYYYMMDD`` + six random digits."""

import random
from datetime import datetime

AWB_PREFIX = "FX"


def generate_awb(now: datetime, rng: random.Random | None = None) -> str:
    rng = rng or random
    return f"{AWB_PREFIX}{now:%Y%m%d}{rng.randint(0, 999_999):06d}"
