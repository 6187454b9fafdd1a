import html
from typing import Optional

import bleach


def clean_text(value: Optional[str]) -> str:
    """Clean a user-supplied display string (names, labels).

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Undoes bleach's entity escaping, so "R&D" is stored as typed
    - Trims whitespace

    Escaping for display is the renderer's job. Script code is never passed
    through here; it is stored verbatim.
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=[], strip=True)
    val = html.unescape(val)
    return val.strip()
