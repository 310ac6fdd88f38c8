"""
Scenario file loading with recursive ``##other.txt`` includes.
"""

import re
from pathlib import Path
from typing import List, Optional, Set, Union

from e2e_replay.core.instruction import parse_line
from e2e_replay.core.types import Instruction
from e2e_replay.error_handling.exceptions import ScenarioFileError
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

INCLUDE_PATTERN = re.compile(r"^##(.+\.txt)$", re.IGNORECASE)


class ScenarioLoader:
    """Parses scenario files into ordered instructions."""

    def parse(
        self,
        path: Union[str, Path],
        visited: Optional[Set[Path]] = None,
    ) -> List[Instruction]:
        """
        Parse a scenario file, expanding includes in place.

        Includes are resolved relative to the including file. A file already
        in ``visited`` is skipped with a warning, which breaks include cycles
        and repeated includes alike.

        Args:
            path: Scenario file
            visited: Absolute paths already expanded in this load

        Returns:
            Ordered instructions

        Raises:
            ScenarioFileError: If the top-level file cannot be read
        """
        path = Path(path)
        visited = set() if visited is None else visited
        return self._parse_file(path.resolve(), visited, top_level=True)

    def _parse_file(self, path: Path, visited: Set[Path], top_level: bool) -> List[Instruction]:
        if path in visited:
            logger.warning(f"Circular include detected, skipping: {path}")
            return []

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            if top_level:
                raise ScenarioFileError(
                    f"Cannot read scenario file {path}: {e}", path=str(path), cause=e
                ) from e
            logger.error(f"Included file not found, skipping: {path}")
            return []

        visited.add(path)
        instructions: List[Instruction] = []

        for line in content.splitlines():
            stripped = line.strip()
            if not stripped:
                continue

            include = INCLUDE_PATTERN.match(stripped)
            if include:
                target = (path.parent / include.group(1).strip()).resolve()
                logger.debug(f"Including {target}")
                instructions.extend(self._parse_file(target, visited, top_level=False))
                continue

            instruction = parse_line(stripped)
            if instruction is None:
                logger.debug(f"Skipping malformed line: {stripped}")
                continue
            instructions.append(instruction)

        return instructions
