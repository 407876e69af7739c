from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict


def _env_extra_mode(default: str = "ignore") -> str:
    """
    Determine the extra-mode for row models from the environment.

    NOTES_EXPORTER_EXTRA: allow|forbid|ignore
    Convenience booleans: "true/1/on" -> forbid (strict), "false/0/off" -> allow
    """
    raw = (os.getenv("NOTES_EXPORTER_EXTRA") or default).strip().lower()

    if raw in {"allow", "forbid", "ignore"}:
        return raw

    if raw in {"1", "true", "yes", "on", "strict"}:
        return "forbid"
    if raw in {"0", "false", "no", "off", "lenient"}:
        return "allow"

    return default


_EXTRA = _env_extra_mode()


class RowModel(BaseModel):
    """
    Base for models validated from sqlite rows.

    Rows usually carry more columns than a model declares, so extras are
    ignored by default; set NOTES_EXPORTER_EXTRA=forbid to catch query drift.
    """

    model_config = ConfigDict(
        extra=_EXTRA,
        frozen=True,
    )


__all__ = ["RowModel", "_env_extra_mode"]
