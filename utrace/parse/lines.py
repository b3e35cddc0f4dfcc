# utrace/parse/lines.py
from typing import Optional


class LineAssembler:
    """
    Turns a sequence of raw output chunks into complete text lines.
    The unterminated tail is kept across calls, so the result does not depend
    on how the process output was split into chunks.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._tail = b""

    def _decode(self, raw: bytes) -> str:
        # decode per line so a multi-byte char split across chunks survives
        return raw.decode(self.encoding, errors="replace").rstrip("\r")

    def feed(self, chunk: bytes) -> list[str]:
        if not chunk:
            return []
        data = self._tail + chunk
        parts = data.split(b"\n")
        self._tail = parts.pop()
        return [self._decode(p) for p in parts]

    def flush(self) -> Optional[str]:
        """Return the unterminated remainder (if any) and reset."""
        tail, self._tail = self._tail, b""
        if not tail:
            return None
        return self._decode(tail)

    @property
    def pending(self) -> bool:
        return bool(self._tail)
