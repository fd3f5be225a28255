import secrets
import time

_B36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _B36[r] + out
    return out or "0"

def generate_code(prefix: str) -> str:
    """Human-friendly code, e.g. BK-K3ZQ1A9F2 (time part + 4 random hex)."""
    stamp = _base36(int(time.time() * 1000))[-5:]
    return f"{prefix}-{stamp}{secrets.token_hex(2).upper()}"
