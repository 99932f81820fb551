"""
Defines the Pydantic models and dataclasses for lesson YAML processing.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

from .constants import DEFAULT_DIFFICULTY, MAX_DIFFICULTY, MIN_DIFFICULTY
from .models import KEBAB_CASE_REGEX_PATTERN

# --- Type Aliases for Pydantic v2 Validation ---
KebabCaseStr = Annotated[
    str, StringConstraints(pattern=KEBAB_CASE_REGEX_PATTERN)
]


# --- Internal Pydantic Models for Raw YAML Validation ---


class _RawYAMLItemEntry(PydanticBaseModel):
    id: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    difficulty: int = Field(
        default=DEFAULT_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("id", mode="before")
    @classmethod
    def strip_id(cls, v):
        """Trim surrounding whitespace from string ids."""
        if isinstance(v, str):
            return v.strip()
        return v


class _RawYAMLLessonFile(PydanticBaseModel):
    lesson: KebabCaseStr
    title: Optional[str] = Field(default=None)
    items: List[_RawYAMLItemEntry] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


# --- Custom Error Reporting Dataclass ---
@dataclass
class YAMLProcessingError(Exception):
    file_path: Path
    message: str
    item_index: Optional[int] = None
    item_id: Optional[str] = None

    def __str__(self) -> str:
        """
        Format the error as a single line with the file name, the item index
        and id when known, followed by the underlying message.
        """
        context_parts = [f"File: {self.file_path.name}"]
        if self.item_index is not None:
            context_parts.append(f"Item Index: {self.item_index}")
        if self.item_id:
            context_parts.append(f"Item: '{self.item_id}'")
        return f"{' | '.join(context_parts)} | Error: {self.message}"


@dataclass
class YAMLProcessorConfig:
    """Configuration for the entire YAML processing workflow."""

    source_directory: Path
    fail_fast: bool = False
