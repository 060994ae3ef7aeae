"""File collaborators for the controller."""

import asyncio
from pathlib import Path


class PathFileIO:
    """Read and write a file on disk without blocking the event loop.

    Bytes are decoded and encoded directly so line endings round-trip exactly.
    """

    def __init__(self, path: Path, encoding: str = "utf-8") -> None:
        self.path = path
        self.encoding = encoding

    async def open_file(self) -> str:
        """Return the file text."""
        data = await asyncio.to_thread(self.path.read_bytes)
        return data.decode(self.encoding)

    async def write_file(self, text: str) -> bool:
        """Replace the file text."""
        await asyncio.to_thread(self.path.write_bytes, text.encode(self.encoding))
        return True
