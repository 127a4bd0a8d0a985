"""Pydantic schemas for settings documents exchanged outside the store."""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, Field

# bool first so JSON true/false are not read as 1/0
ExportValue = Union[bool, int, float, str]


class SettingsExport(BaseModel, extra="ignore"):
	"""JSON snapshot of every table's settings, as written by ``pidpro export``."""

	version: int = Field(ge=0)
	tables: dict[str, dict[str, ExportValue]] = {}
