"""Staged scene-graph recovery from binary buffers."""

from scenedig.recovery.context import RecoveryContext
from scenedig.recovery.orchestrator import STAGES, Stage, recover, recover_file

__all__ = ["RecoveryContext", "STAGES", "Stage", "recover", "recover_file"]
