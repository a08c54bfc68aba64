"""Error types raised by SlotForge."""

from typing import Optional


class SlotForgeError(Exception):
    """Base class for SlotForge errors."""

    code = "SLOTFORGE_ERROR"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConfigurationError(SlotForgeError, ValueError):
    """Invalid slot system configuration (slot counts, unit/slot ranges)."""

    code = "CONFIGURATION_ERROR"


class ColorValidationError(SlotForgeError, ValueError):
    """A color record failed validation."""

    code = "COLOR_VALIDATION_ERROR"


class SlotAssignmentError(SlotForgeError):
    """A color could not be placed in a slot."""

    code = "SLOT_ASSIGNMENT_ERROR"

    def __init__(
        self,
        message: str,
        slot_id: Optional[str] = None,
        color_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.slot_id = slot_id
        self.color_id = color_id


class MergeInputError(SlotForgeError, LookupError):
    """Target or source color of a merge is not present in the snapshot."""

    code = "MERGE_INPUT_ERROR"

    def __init__(self, message: str, missing_ids: Optional[list] = None):
        super().__init__(message)
        self.missing_ids = list(missing_ids or [])


class SnapshotError(SlotForgeError, ValueError):
    """A print snapshot file could not be read."""

    code = "SNAPSHOT_ERROR"
