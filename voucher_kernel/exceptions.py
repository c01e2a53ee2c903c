"""
Typed Exception Hierarchy for the Voucher Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (the VoucherDesk boundary, tests, scripts) must be able
to react to failures without parsing messages.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.approve(actor, voucher_id)
    except Exception as e:
        if "already" in str(e):  # FRAGILE - message might change
            refresh()

Example - RIGHT way:
    try:
        service.approve(actor, voucher_id)
    except InvalidTransitionError as e:
        log.warning("voucher %s is %s", e.voucher_id, e.from_status)
        respond(code=e.code, status=e.from_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    VoucherKernelError (base)
    |
    +-- ValidationError
    |   +-- DuplicateEmailError
    |   +-- DuplicateOrganizationError
    |
    +-- AuthorizationError
    |
    +-- InvalidTransitionError
    |
    +-- NotFoundError
    |   +-- OrganizationNotFoundError
    |   +-- UserNotFoundError
    |   +-- VoucherNotFoundError
    |   +-- NotificationNotFoundError
    |
    +-- ConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                  | When Raised
----------------------|-------------------------------------------------------
VALIDATION_FAILED     | Missing/malformed input fields (lists every field)
DUPLICATE_EMAIL       | Email already registered (globally unique)
DUPLICATE_ORGANIZATION| Organization name already taken
NOT_AUTHORIZED        | Role or organization does not permit the action
INVALID_TRANSITION    | Voucher not in a state the transition may leave from
NOT_FOUND             | Entity missing from the actor's visible scope
CONFLICT              | Conditional write lost a race with another actor

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Cross-tenant lookups raise NotFoundError, never AuthorizationError, so a
   caller cannot discover the existence of another organization's records.

2. ValidationError carries an ``errors`` mapping of field -> message with
   every offending field, not only the first one found.

3. ConflictError is distinct from InvalidTransitionError: the former means
   "someone else acted between your read and your write"; the latter means
   "the voucher was already in the wrong state when you looked".
===============================================================================
"""


class VoucherKernelError(Exception):
    """
    Base exception for all voucher kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "VOUCHER_KERNEL_ERROR"


# Validation


class ValidationError(VoucherKernelError):
    """One or more input fields are missing or malformed."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Validation failed for: {fields}")

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(sorted(self.errors))


class DuplicateEmailError(ValidationError):
    """Email address is already registered to another user."""

    code: str = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__({"email": f"Email already registered: {email}"})


class DuplicateOrganizationError(ValidationError):
    """Organization name is already taken."""

    code: str = "DUPLICATE_ORGANIZATION"

    def __init__(self, name: str):
        self.name = name
        super().__init__({"name": f"Organization name already taken: {name}"})


# Authorization


class AuthorizationError(VoucherKernelError):
    """Actor's role or organization does not permit the action."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"Not authorized to {action}: {reason}")


# Lifecycle


class InvalidTransitionError(VoucherKernelError):
    """Voucher exists but cannot move from its current status to the target."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, voucher_id: str, from_status: str, to_status: str):
        self.voucher_id = voucher_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Voucher {voucher_id} cannot move from '{from_status}' to '{to_status}'"
        )


# Lookup


class NotFoundError(VoucherKernelError):
    """Entity does not exist within the actor's visible scope."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class OrganizationNotFoundError(NotFoundError):
    entity_type = "Organization"


class UserNotFoundError(NotFoundError):
    entity_type = "User"


class VoucherNotFoundError(NotFoundError):
    entity_type = "Voucher"


class NotificationNotFoundError(NotFoundError):
    entity_type = "Notification"


# Concurrency


class ConflictError(VoucherKernelError):
    """Optimistic concurrency guard detected a concurrent modification."""

    code: str = "CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_status = expected_status
        super().__init__(
            f"Conflict on {entity_type} {entity_id}: status is no longer "
            f"'{expected_status}' (another actor already acted)"
        )
