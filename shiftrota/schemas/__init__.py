from shiftrota.schemas.auth import TokenData
from shiftrota.schemas.rotation import (
    Envelope,
    RotationPatternCreate, RotationPatternUpdate, RotationPatternOut,
    RotationAssignmentCreate, RotationAssignmentDeactivate, RotationOverridesUpdate, RotationAssignmentOut,
    RotationGenerateRequest, RotationGenerateData, GeneratedShiftOut, CalendarEntryOut,
    RotationHistoryOut, RotationHistoryModify, RotationHistoryCancel,
)

__all__ = [
    "TokenData",
    "Envelope",
    "RotationPatternCreate", "RotationPatternUpdate", "RotationPatternOut",
    "RotationAssignmentCreate", "RotationAssignmentDeactivate", "RotationOverridesUpdate", "RotationAssignmentOut",
    "RotationGenerateRequest", "RotationGenerateData", "GeneratedShiftOut", "CalendarEntryOut",
    "RotationHistoryOut", "RotationHistoryModify", "RotationHistoryCancel",
]
