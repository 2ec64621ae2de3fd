"""
Error taxonomy for the scheduling core.

  InvalidIntervalError    → candidate interval is inverted / malformed
  CounterPersistenceError → counter store failed while minting a number
  ResourceConflictError   → resource already reserved (adapter layer)
  DataIntegrityWarning    → never raised, logged + collected instead
"""
from typing import Optional


class InvalidIntervalError(ValueError):
    def __init__(self, start, end, resource_id: Optional[str] = None):
        self.start = start
        self.end = end
        self.resource_id = resource_id
        where = f" for {resource_id}" if resource_id else ""
        super().__init__(f"Invalid interval{where}: start {start} is after end {end}")


class CounterPersistenceError(RuntimeError):
    def __init__(self, year_month_key: str, detail: str = ""):
        self.year_month_key = year_month_key
        msg = f"Booking counter for {year_month_key} could not be updated"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ResourceConflictError(Exception):
    """Raised when a resource is already reserved for (part of) an interval."""

    def __init__(self, resource_id: str, resource_kind: str, start, end,
                 conflicting_ids: list, all_conflicts: Optional[dict] = None):
        self.resource_id = resource_id
        self.resource_kind = resource_kind
        self.start = start
        self.end = end
        self.conflicting_ids = list(conflicting_ids)
        # "BUS:B1" → ids, for every resource of the assignment that is taken
        self.all_conflicts = all_conflicts or {
            f"{resource_kind}:{resource_id}": self.conflicting_ids
        }
        super().__init__(
            f"{resource_kind} {resource_id} is not available between {start} and {end} "
            f"(conflicts: {', '.join(str(i) for i in self.conflicting_ids)})"
        )


class DataIntegrityWarning(UserWarning):
    """
    Non-fatal inconsistency in stored data (negative free seats,
    due date before issue date, ...). The core clamps to a safe value,
    logs the warning and hands it back through an optional `issues` list.
    """

    def __init__(self, code: str, message: str, **context):
        self.code = code
        self.context = context
        super().__init__(message)

    def as_dict(self) -> dict:
        return {"code": self.code, "message": str(self), **self.context}
