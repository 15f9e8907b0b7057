"""Process memory probes (psutil) and memory-limit parsing."""

import psutil

_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3}


def process_memory_bytes() -> int:
    """Resident set size of the current process."""
    return int(psutil.Process().memory_info().rss)


def physical_memory_bytes() -> int:
    return int(psutil.virtual_memory().total)


def parse_memory_limit(value: str | None) -> int:
    """
    Parse a limit like '512M', '2g', '1048576'. Returns 0 for empty, '-1' or unparseable input,
    which callers read as 'no explicit limit'.
    """
    if value is None:
        return 0
    raw = value.strip().lower()
    if not raw or raw == "-1":
        return 0
    multiplier = 1
    if raw[-1] in _UNITS:
        multiplier = _UNITS[raw[-1]]
        raw = raw[:-1].strip()
    try:
        amount = int(raw)
    except ValueError:
        return 0
    return max(amount, 0) * multiplier
