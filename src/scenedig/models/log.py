"""Per-run message collector."""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger("scenedig")


@dataclass
class RecoveryLog:
    """Collects messages for the caller and forwards them to logging.

    Non-fatal problems never raise; they end up here so that a recovered
    scene always comes with an explanation of what was degraded.
    """

    infos: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.infos.append(message)
        logger.debug(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def error(self, message: str) -> None:
        self.errors.append(message)
        logger.error(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def __str__(self) -> str:
        lines = []
        for title, entries in (
            ("Infos", self.infos),
            ("Warnings", self.warnings),
            ("Errors", self.errors),
        ):
            if entries:
                lines.append(f"{title}:")
                lines.extend(f"  {entry}" for entry in entries)
        return "\n".join(lines)
