"""Colon command-line parsing and verb completion."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class CommandVerb(Enum):
    BACK = "back"
    QUIT = "quit"
    REFRESH = "refresh"
    HELP = "help"
    CLEAR_FILTER = "clear-filter"
    SELECT_ALL = "select-all"
    DESELECT_ALL = "deselect-all"
    EC2 = "ec2"
    S3 = "s3"
    EKS = "eks"
    ACCOUNT = "account"
    REGION = "region"
    UPLOAD = "upload"


# Names accepted after ``:``, in the order suggestions are shown.
COMMAND_ALIASES: dict[str, CommandVerb] = {
    "q": CommandVerb.BACK,
    "quit": CommandVerb.BACK,
    "qa": CommandVerb.QUIT,
    "r": CommandVerb.REFRESH,
    "refresh": CommandVerb.REFRESH,
    "help": CommandVerb.HELP,
    "h": CommandVerb.HELP,
    "?": CommandVerb.HELP,
    "cf": CommandVerb.CLEAR_FILTER,
    "clearfilter": CommandVerb.CLEAR_FILTER,
    "sa": CommandVerb.SELECT_ALL,
    "selectall": CommandVerb.SELECT_ALL,
    "da": CommandVerb.DESELECT_ALL,
    "deselectall": CommandVerb.DESELECT_ALL,
    "ec2": CommandVerb.EC2,
    "s3": CommandVerb.S3,
    "eks": CommandVerb.EKS,
    "account": CommandVerb.ACCOUNT,
    "acc": CommandVerb.ACCOUNT,
    "region": CommandVerb.REGION,
    "upload": CommandVerb.UPLOAD,
}
COMMAND_NAMES: tuple[str, ...] = tuple(COMMAND_ALIASES)


@dataclass(frozen=True)
class Command:
    name: str = ""
    args: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.name

    @property
    def verb(self) -> CommandVerb | None:
        return COMMAND_ALIASES.get(self.name)


def parse_command(line: str) -> Command:
    """Split a command line on whitespace into a verb and its arguments."""
    parts = line.split()
    if not parts:
        return Command()
    return Command(name=parts[0], args=tuple(parts[1:]))


def command_suggestions(prefix: str) -> list[str]:
    """Known command names starting with ``prefix``."""
    if not prefix:
        return []
    return [name for name in COMMAND_NAMES if name.startswith(prefix)]


def complete_command(prefix: str) -> tuple[str, bool]:
    """Complete a partial verb.

    Returns the replacement text and whether it is a unique, full match.
    Several matches yield their longest common prefix; no match returns
    ``prefix`` unchanged.
    """
    matches = command_suggestions(prefix)
    if not matches:
        return prefix, False
    if len(matches) == 1:
        return matches[0], True
    return os.path.commonprefix(matches), False
