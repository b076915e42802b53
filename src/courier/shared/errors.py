"""Courier error taxonomy.

Every error derives from a Protean exception so the framework's FastAPI
exception handlers already know how to render it; the API layer maps the
more specific classes to their own status codes.

    validation      BatchRejected, ValidationError
    state conflict  InvalidStateTransition, NotAssigned, NotAuthorized
    business rule   InvalidOtp, CodMismatch
    not found       protean.exceptions.ObjectNotFoundError
"""

from protean.exceptions import InvalidOperationError, ValidationError


class InvalidStateTransition(ValidationError):
    """The shipment (or manifest) is not in a state that allows the move."""

    def __init__(self, current: str, requested: str, entity: str = "shipment", identifier: str | None = None):
        self.current = current
        self.requested = requested
        self.entity = entity
        self.identifier = identifier
        label = f"{entity} {identifier}" if identifier else entity
        super().__init__({"status": [f"Cannot transition {label} from {current} to {requested}"]})


class NotAssigned(ValidationError):
    """The shipment is not assigned to the rider asking to act on it."""

    def __init__(self, awb: str, rider_id: str, entity: str = "Shipment"):
        self.awb = awb
        self.rider_id = rider_id
        super().__init__({"rider_id": [f"{entity} {awb} is not assigned to rider {rider_id}"]})


class NotAuthorized(ValidationError):
    def __init__(self, action: str, role: str):
        self.action = action
        self.role = role
        super().__init__({"actor": [f"Role {role} may not perform {action}"]})


class InvalidOtp(ValidationError):
    def __init__(self, awb: str, reason: str = "OTP does not match"):
        self.awb = awb
        super().__init__({"otp": [reason]})


class CodMismatch(ValidationError):
    """Collected cash does not equal the amount due. No partial settlement."""

    def __init__(self, awb: str, expected: float, collected: float | None):
        self.awb = awb
        self.expected = expected
        self.collected = collected
        super().__init__({"cod_amount": [f"COD amount mismatch for {awb}: expected {expected}, collected {collected}"]})


class BatchRejected(ValidationError):
    """A bulk operation refused the whole batch.

    ``offending`` maps each failing AWB to a human-readable reason, so the
    caller can fix exactly those entries and resubmit.
    """

    def __init__(self, offending: dict[str, str], operation: str = "batch"):
        self.offending = dict(offending)
        self.operation = operation
        super().__init__({"awbs": [f"{awb}: {reason}" for awb, reason in sorted(self.offending.items())]})


class PhoneVerificationFailed(ValidationError):
    def __init__(self, awb: str):
        self.awb = awb
        super().__init__({"phone": ["Phone number verification failed"]})


class ManifestNumberTaken(InvalidOperationError):
    """Another writer claimed the manifest number first; retry with a fresh read."""

    def __init__(self, manifest_number: str):
        self.manifest_number = manifest_number
        super().__init__(f"Manifest number {manifest_number} is already assigned")
