import logging
import re
from typing import List, Optional

from samsung_tv_bridge.domain.devices.models import DeviceRecord

logger = logging.getLogger(__name__)

KEY_PREFIX = "KEY_"
MAX_REPEAT = 50

_SEPARATORS = re.compile(r"[\s,;]+")
_TOKEN = re.compile(r"^(?:KEY_)?([A-Z0-9_]+?)(?:\*([1-9]\d*))?$")


def parse_keys(value: str, device: Optional[DeviceRecord] = None) -> List[str]:
    """
    Parse a user-supplied key string into remote key identifiers.

    Tokens are separated by commas, semicolons or whitespace and are matched
    case-insensitively. The ``KEY_`` prefix is optional and a ``*N`` suffix
    repeats a key N times, so ``"source, right*2 enter"`` becomes
    ``["KEY_SOURCE", "KEY_RIGHT", "KEY_RIGHT", "KEY_ENTER"]``. Repeats above
    ``MAX_REPEAT`` are skipped like invalid tokens.

    Args:
        value: The configured key string
        device: Device the keys belong to, only used for log messages

    Returns:
        List of key identifiers; invalid tokens are skipped
    """
    keys: List[str] = []
    for token in _SEPARATORS.split(value.strip()):
        if not token:
            continue

        match = _TOKEN.match(token.upper())
        if not match:
            owner = f' for device "{device.display_name}"' if device else ""
            logger.warning(f'Ignoring invalid key "{token}"{owner}')
            continue

        name, repeat = match.groups()
        count = int(repeat or 1)
        if count > MAX_REPEAT:
            owner = f' for device "{device.display_name}"' if device else ""
            logger.warning(f'Ignoring key "{token}"{owner}: repeat count above {MAX_REPEAT}')
            continue
        keys.extend([f"{KEY_PREFIX}{name}"] * count)

    return keys
