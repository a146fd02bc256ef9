"""Read and upsert values in a local ``.env`` file."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


class EnvFileStore:
    """Key-value view over a ``.env`` file.

    Values can be read all at once or by name, and upserted by name.
    Upserts rewrite the matching ``NAME=`` line in place and leave every
    other line untouched; a missing file is created.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def values(self) -> dict[str, str]:
        """Return every assignment in the file; a missing file reads as empty."""

        if not self.path.is_file():
            return {}
        return {key: value for key, value in dotenv_values(self.path).items() if value is not None}

    def get(self, name: str) -> str | None:
        return self.values().get(name)

    def upsert(self, name: str, value: str) -> None:
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
            raise ValueError(f"Invalid environment variable name: {name!r}")
        if "\n" in value or "\r" in value:
            raise ValueError("Environment values must be single-line strings")

        try:
            content = self.path.read_text()
        except FileNotFoundError:
            content = ""

        pattern = re.compile(rf"^{re.escape(name)}=.*$", re.MULTILINE)
        line = f"{name}={value}"
        if pattern.search(content):
            content = pattern.sub(lambda _match: line, content)
        else:
            if content and not content.endswith("\n"):
                content += "\n"
            content += f"{line}\n"

        self.path.write_text(content)
        logger.info("Updated %s in %s", name, self.path)
