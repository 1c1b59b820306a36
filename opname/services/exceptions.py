"""Typed failures raised by the opname services.

Each error carries the HTTP status code the API layer answers with. The ORM
guard raises these too, so this module must not import the web framework.
"""


class OpnameError(Exception):
    """Base class for every rejected opname operation."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Validation errors


class ValidationError(OpnameError):
    """Input rejected at the point of entry."""

    status_code = 422


class InvalidIdentifierError(ValidationError):
    """Scanned identifier is too short or too long to be an IMEI."""

    def __init__(self, imei: str, min_length: int, max_length: int):
        super().__init__(f"IMEI must be {min_length} to {max_length} characters long")
        self.imei = imei
        self.min_length = min_length
        self.max_length = max_length


class InvalidActionError(ValidationError):
    """Action does not belong to the vocabulary of the item's worklist."""


class MissingSoldReferenceError(ValidationError):
    """A sold action was chosen without a sale reference."""

    def __init__(self, item_id: int):
        super().__init__(f"Snapshot item {item_id}: sold actions require a sold_reference_id")
        self.item_id = item_id


# Conflict errors


class ConflictError(OpnameError):
    """Operation conflicts with the current state of the session."""

    status_code = 409


class DuplicateScanError(ConflictError):
    """Identifier was already accepted in this session."""

    def __init__(self, imei: str):
        super().__init__(f"IMEI {imei} has already been scanned in this session")
        self.imei = imei


class InvalidTransitionError(ConflictError):
    """Session status does not allow the requested operation."""


class UnresolvedDiscrepanciesError(ConflictError):
    """Lock attempted while some discrepancies still have no action."""

    def __init__(self, missing_item_ids: list[int], unregistered_item_ids: list[int]):
        super().__init__(
            f"{len(missing_item_ids)} missing and {len(unregistered_item_ids)} unregistered "
            "items still need an action"
        )
        self.missing_item_ids = missing_item_ids
        self.unregistered_item_ids = unregistered_item_ids


class ImmutabilityViolationError(ConflictError):
    """Write attempted against a locked session or one of its rows."""


# Authorization / lookup


class PermissionDeniedError(OpnameError):
    """Actor lacks the role required for the operation."""

    status_code = 403


class NotFoundError(OpnameError):
    """Session or item does not exist (in this session)."""

    status_code = 404


# Dependency errors


class DependencyError(OpnameError):
    """Persistence or an upstream collaborator was unavailable."""

    status_code = 503


class SnapshotSourceError(DependencyError):
    """The inventory snapshot source could not be read."""
