"""Pydantic model and JSON I/O for problem records.

Problem lists are plain JSON arrays. The company scraper writes one array
per company; the snapshot pipeline reads one array of ``{Name, link}``
objects. Field names on disk follow that external format, so the model
uses aliases.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from problemsnap.common.exceptions import (
    InputFileException,
    RecordFormatException,
)

logger = logging.getLogger(__name__)


class ProblemRecord(BaseModel):
    """A problem listed on the site."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., alias="Name", description="Problem title")
    link: str = Field(..., description="Absolute URL of the problem page")
    difficulty: str | None = Field(
        None, description="Difficulty label, e.g. Easy, Med, Hard"
    )

    def to_json_dict(self) -> dict[str, str | None]:
        """Return the on-disk representation (``Name``, ``link``, ``difficulty``)."""
        return self.model_dump(by_alias=True)


def load_problem_records(path: Path) -> list[ProblemRecord]:
    """Read and validate a JSON array of problem records.

    Args:
        path: JSON file containing an array of objects with ``Name`` and
            ``link`` (``difficulty`` is optional).

    Returns:
        The records in file order.

    Raises:
        InputFileException: If the file cannot be read or is not a JSON array.
        RecordFormatException: If an entry does not match ProblemRecord.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputFileException(f"Could not read problem list: {e}", path) from e

    try:
        raw = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise InputFileException(
            f"Problem list is not valid JSON: {e.msg}",
            path,
            {"line": e.lineno, "column": e.colno},
        ) from e

    if not isinstance(raw, list):
        raise InputFileException(
            "Problem list must be a JSON array",
            path,
            {"found": type(raw).__name__},
        )

    records: list[ProblemRecord] = []
    for index, item in enumerate(raw):
        try:
            records.append(ProblemRecord.model_validate(item))
        except ValidationError as e:
            raise RecordFormatException(
                errors=[dict(err) for err in e.errors()],
                index=index,
                failed_doc=item,
                path=path,
            ) from e

    logger.debug(f"Loaded {len(records)} problem records from {path}")
    return records


def save_problem_records(path: Path, records: Iterable[ProblemRecord]) -> None:
    """Write records as an indented JSON array, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.to_json_dict() for record in records]
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def merge_problem_records(
    paths: Iterable[Path],
    difficulties: set[str] | None = None,
) -> list[ProblemRecord]:
    """Combine several problem lists into one without duplicate names.

    The first occurrence of each name wins, so the output order follows the
    order of ``paths`` and then file order.

    Args:
        paths: Problem list files, typically the per-company JSON files.
        difficulties: If given, keep only records whose difficulty is in
            this set (case-insensitive).

    Returns:
        The merged records.
    """
    wanted = {d.lower() for d in difficulties} if difficulties else None
    seen: set[str] = set()
    merged: list[ProblemRecord] = []

    for path in paths:
        for record in load_problem_records(path):
            if record.name in seen:
                continue
            if wanted is not None and (
                record.difficulty is None
                or record.difficulty.lower() not in wanted
            ):
                continue
            seen.add(record.name)
            merged.append(record)

    return merged
