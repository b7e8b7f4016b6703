from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Same boundaries as str.splitlines(), but trailing blank lines survive.
_LINE_BREAK = re.compile(r"\r\n|[\n\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029]")


@dataclass(frozen=True)
class LabelTable:
    """
    Class names in file order.

    Entry 0 is a placeholder, so detector class id `i` maps to `names[i + 1]`.
    """

    names: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.names)

    def lookup(self, class_id: int) -> str:
        index = int(class_id) + 1
        if index < 1 or index >= len(self.names):
            raise IndexError(f"class id {class_id} outside label table of {len(self.names)} entries")
        return self.names[index]

    @classmethod
    def from_text(cls, text: str) -> "LabelTable":
        return cls(tuple(_LINE_BREAK.split(text)))


def load_labels(labels_path: PathLike) -> LabelTable:
    """
    Load a newline-delimited UTF-8 label map (first line is the unused placeholder).

    Lines are kept verbatim: no trimming, no de-duplication.
    """

    path = Path(labels_path)
    if not path.exists():
        raise FileNotFoundError(f"Labels file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"Labels file cannot be read: {path}") from exc

    table = LabelTable.from_text(text)
    logger.info("Loaded %d labels from %s", len(table), path)
    return table
