"""Shared pydantic base for on-disk diagram documents."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """Base model for JSON documents persisted in the vault.

    Documents use camelCase keys on disk; Python code uses snake_case.
    Unknown keys are preserved so a read-modify-write never drops data
    written by newer tooling.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize using on-disk key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = ["DocumentModel"]
