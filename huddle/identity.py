from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from .errors import MissingEditorName


@dataclass(frozen=True)
class Editor:
    """The self-declared name stamped on everything a session touches.

    Passed explicitly into each mutating call; nothing here is verified
    beyond the name not being blank.
    """

    name: str

    def __post_init__(self) -> None:
        trimmed = (self.name or "").strip()
        if not trimmed:
            raise MissingEditorName("editor name is required")
        object.__setattr__(self, "name", trimmed)


def get_editor(x_editor_name: Optional[str] = Header(default=None)) -> Editor:
    """FastAPI dependency reading the editor from ``X-Editor-Name``."""
    return Editor(x_editor_name or "")
