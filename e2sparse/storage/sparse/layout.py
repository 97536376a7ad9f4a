"""Parser for dumpe2fs-style filesystem layout listings.

The listing has two sections separated by the first blank line:

    Block count:              8192
    Free blocks:              6941
    Block size:               1024
    First block:              1

    Group 0: (Blocks 1-8191)
      Primary superblock at 1, Group descriptors at 2-2
      Free blocks: 1251-8191
      Free inodes: 12-2048

Header lines are stored under a normalized label (``Block count`` becomes
``block_count``). In the group section only ``Group N: ... Blocks a-b`` and the
``Free blocks:`` attribute of each group are consumed.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Optional

from e2sparse.domain import BlockGroup, BlockRange, RangeModel
from e2sparse.logging import LoggerFactory
from e2sparse.storage.exceptions import LayoutParseError

log = LoggerFactory.for_layout()

GROUP_HEADER_RE = re.compile(r"^Group\s+(\d+):.*?\bblocks\s+(\d+)-(\d+)", re.IGNORECASE)
FREE_BLOCKS_LABEL = "free blocks"

REQUIRED_FIELDS = ("block_size", "block_count", "free_blocks")


class ParserState(Enum):
    HEADER = "header"
    GROUPS = "groups"


def normalize_label(label: str) -> str:
    """Lowercase a header label and join its words with underscores."""
    return "_".join(label.split()).lower()


def parse_free_ranges(value: str, line_number: Optional[int] = None) -> list[BlockRange]:
    """Parse ``"1-5, 9, 12-20"`` into inclusive ``(start, end)`` pairs.

    An empty value yields an empty list (the group is fully used).
    """
    ranges: list[BlockRange] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        start_text, _, end_text = entry.partition("-")
        try:
            start = int(start_text)
            end = int(end_text) if end_text else start
        except ValueError:
            raise LayoutParseError(
                f"malformed free block entry {entry!r}", line_number
            ) from None
        if end < start:
            raise LayoutParseError(f"free block range {entry!r} is inverted", line_number)
        ranges.append((start, end))
    return ranges


def _parse_count(fields: dict[str, str], name: str) -> int:
    raw = fields.get(name)
    if raw is None:
        raise LayoutParseError(f"missing header field {name!r}")
    try:
        value = int(raw.split()[0])
    except (ValueError, IndexError):
        raise LayoutParseError(f"malformed header field {name!r}: {raw!r}") from None
    if value < 0:
        raise LayoutParseError(f"negative header field {name!r}: {raw!r}")
    return value


class LayoutParser:
    """Two-state parser turning listing lines into a validated RangeModel."""

    def __init__(self) -> None:
        self.state = ParserState.HEADER
        self.fields: dict[str, str] = {}
        self.groups: list[BlockGroup] = []
        self._current: Optional[dict] = None

    def feed(self, line: str, line_number: Optional[int] = None) -> None:
        line = line.rstrip("\r\n")
        if self.state is ParserState.HEADER:
            self._feed_header(line)
        else:
            self._feed_group(line, line_number)

    def _feed_header(self, line: str) -> None:
        if not line.strip():
            self.state = ParserState.GROUPS
            return
        label, sep, value = line.partition(":")
        if not sep:
            # banner lines such as "dumpe2fs 1.47.0 (5-Feb-2023)"
            return
        self.fields[normalize_label(label)] = value.strip()

    def _feed_group(self, line: str, line_number: Optional[int]) -> None:
        stripped = line.strip()
        if not stripped:
            return
        if stripped.startswith("Group "):
            match = GROUP_HEADER_RE.match(stripped)
            if not match:
                raise LayoutParseError(f"malformed group header {stripped!r}", line_number)
            self._close_group()
            index, start, end = (int(value) for value in match.groups())
            if end < start:
                raise LayoutParseError(
                    f"group {index} has end block {end} before start block {start}",
                    line_number,
                )
            self._current = {"index": index, "start": start, "end": end, "free": []}
            return

        label, sep, value = stripped.partition(":")
        if not sep or label.strip().lower() != FREE_BLOCKS_LABEL:
            return
        if self._current is None:
            # journal section or other preamble before the first group
            return
        self._current["free"] = parse_free_ranges(value, line_number)

    def _close_group(self) -> None:
        if self._current is None:
            return
        current = self._current
        self.groups.append(
            BlockGroup(
                index=current["index"],
                start_block=current["start"],
                end_block=current["end"],
                free_ranges=tuple(current["free"]),
            )
        )
        self._current = None

    def finish(self) -> RangeModel:
        self._close_group()
        for name in REQUIRED_FIELDS:
            if name not in self.fields:
                raise LayoutParseError(f"missing header field {name!r}")

        first_block = 0
        if "first_block" in self.fields:
            first_block = _parse_count(self.fields, "first_block")

        model = RangeModel(
            block_size=_parse_count(self.fields, "block_size"),
            total_blocks=_parse_count(self.fields, "block_count"),
            free_blocks=_parse_count(self.fields, "free_blocks"),
            groups=tuple(self.groups),
            first_block=first_block,
            fields=dict(self.fields),
        )
        model.validate()

        listed_free = sum(group.free_block_count for group in model.groups)
        if listed_free != model.free_blocks:
            log.warning(
                f"Free blocks listed per group ({listed_free}) differ from "
                f"header count ({model.free_blocks})"
            )
        log.debug(
            f"Parsed layout: {len(model.groups)} groups, {model.total_blocks} blocks "
            f"of {model.block_size} bytes, {model.free_blocks} free"
        )
        return model


def parse_layout(lines: Iterable[str]) -> RangeModel:
    """Parse a layout listing into a validated RangeModel.

    Raises:
        LayoutParseError: If the listing is malformed or inconsistent
    """
    parser = LayoutParser()
    for line_number, line in enumerate(lines, start=1):
        parser.feed(line, line_number)
    return parser.finish()
