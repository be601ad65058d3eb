from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class ScriptFragments(BaseModel):
    """Script tag fragments for insertion before ``</head>`` and ``</body>``.

    Also the wire shape of the backend script registry:
    ``{"head": [str, ...], "body": [str, ...]}``. A missing or null list is
    treated as empty.
    """

    model_config = ConfigDict(frozen=True)

    head: tuple[str, ...] = ()
    body: tuple[str, ...] = ()

    @field_validator("head", "body", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @property
    def is_empty(self) -> bool:
        return not self.head and not self.body
