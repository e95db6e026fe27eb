"""Probe for the external programs a run depends on."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterable

from cloudbackup.core.errors import ToolMissingError
from cloudbackup.core.models import PathSpec

log = logging.getLogger(__name__)


def required_tools(specs: Iterable[PathSpec]) -> set[str]:
    """Programs needed to back up and restore the given paths."""
    tools = {"tar"}
    for spec in specs:
        if spec.compression:
            tools.add("xz")
        if spec.encryption:
            tools.add("gpg")
        if spec.target is not None:
            tools.add(spec.target.info.command)
    return tools


def check_tools(
    tools: Iterable[str],
    which: Callable[[str], str | None] = shutil.which,
) -> None:
    """Raise ToolMissingError listing every program not found on PATH."""
    missing = [tool for tool in sorted(set(tools)) if which(tool) is None]
    if missing:
        raise ToolMissingError(missing)
    log.debug("Required commands present: %s", ", ".join(sorted(set(tools))))
