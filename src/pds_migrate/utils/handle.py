"""Handle normalization helpers."""

import re

# LRE/PDF, LRM/RLM and the isolate controls picked up when copying a handle
# from a rendered profile page.
BIDI_CONTROL_CHARACTERS = re.compile('[\u202a\u202c\u200e\u200f\u2066-\u2069]')


def normalize_handle(value: str) -> str:
    """Clean up a handle typed or pasted by a user.

    Removes bidirectional control characters, surrounding whitespace and
    the leading ``@``. Applying it twice gives the same result as once.

    Args:
        value: Raw handle

    Returns:
        Normalized handle
    """
    value = BIDI_CONTROL_CHARACTERS.sub('', value).strip()
    return value.lstrip('@').strip()
