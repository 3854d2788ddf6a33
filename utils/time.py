import time

def utc_ms() -> int:
    """Wall-clock UTC milliseconds, read from the ns clock."""
    return time.time_ns() // 1_000_000

def parse_duration_ms(value: str | int) -> int:
    """"500ms" / "30s" / "5m" / "1h" / "1d" / bare int (ms) -> milliseconds."""
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if s.isdigit():
        return int(s)
    if s.endswith("ms"):
        return int(s[:-2])
    if s.endswith("s"):
        return int(s[:-1]) * 1000
    if s.endswith("m"):
        return int(s[:-1]) * 60_000
    if s.endswith("h"):
        return int(s[:-1]) * 3_600_000
    if s.endswith("d"):
        return int(s[:-1]) * 86_400_000
    raise ValueError(f"unknown duration: {value}")
