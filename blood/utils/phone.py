from __future__ import annotations

import re
from typing import Optional

from django.conf import settings

_FORMATTING = re.compile(r"[\s\-()]+")
_NON_DIGITS = re.compile(r"\D")


def _default_country_code() -> str:
    code = str(getattr(settings, "AWS_SNS_DEFAULT_COUNTRY_CODE", None) or "+1")
    return code if code.startswith("+") else f"+{code}"


def normalize_phone_number(raw: Optional[str]) -> Optional[str]:
    """Turn a donor or requester phone, as typed, into an E.164 number SNS can text.

    Spacing, dashes and brackets are ignored. Numbers without a ``+`` are local:
    a leading trunk ``0`` is dropped and ``AWS_SNS_DEFAULT_COUNTRY_CODE`` is
    prepended, unless the digits already start with that code. Anything too
    short to dial comes back as None.
    """

    if not raw:
        return None

    text = _FORMATTING.sub("", str(raw).strip())
    digits = _NON_DIGITS.sub("", text)

    if text.startswith("+"):
        return f"+{digits}" if len(digits) >= 7 else None

    local = digits.lstrip("0")
    if len(local) < 7:
        return None

    country_code = _default_country_code()
    if len(local) > 10 and local.startswith(country_code[1:]):
        return f"+{local}"
    return f"{country_code}{local}"
