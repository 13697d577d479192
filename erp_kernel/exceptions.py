"""
Typed Exception Hierarchy for the ERP Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Reconciliation runs from two very different call sites:

  - Background sync (application shell mount, service list load) must treat
    "already applied" as success and swallow transient store failures.
  - Operator actions (manual return) must surface failures, and must be able
    to tell "already returned" apart from "the store is down".

Both decisions are made by catching exception TYPES, never by parsing
messages.  Every exception carries a machine-readable ``code`` class attribute
and stores its context as attributes.

Example:
    try:
        rental_service.return_item(tenant_id, service_id, item_id, today)
    except RentalEventAlreadyAppliedError:
        show("already returned")
    except TransientStoreError as e:
        show(str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ErpKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidPayDayError
    |   +-- MissingIdentifierError
    |   +-- InvalidServiceLineError
    |
    +-- ConflictError
    |   +-- RentalEventAlreadyAppliedError
    |
    +-- TransientStoreError
    |
    +-- StateError
    |   +-- ItemNotReturnableError
    |
    +-- NotFoundError
    |   +-- ServiceNotFoundError
    |   +-- WorkerNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                          | When Raised
--------------|-------------------------------|-----------------------------------
Validation    | INVALID_PAY_DAY               | pay day outside 1..28
              | MISSING_IDENTIFIER            | tenant/service/worker id missing
              | INVALID_SERVICE_LINE          | bad qty, rental window or discount
--------------|-------------------------------|-----------------------------------
Conflict      | LEDGER_EVENT_ALREADY_APPLIED  | unique (tenant, ref, reason) hit
--------------|-------------------------------|-----------------------------------
Store         | TRANSIENT_STORE_ERROR         | connection / operational failure
--------------|-------------------------------|-----------------------------------
State         | ITEM_NOT_RETURNABLE           | return of a never-started item
--------------|-------------------------------|-----------------------------------
Not found     | SERVICE_NOT_FOUND             | no such service in tenant
              | WORKER_NOT_FOUND              | no such worker in tenant
--------------|-------------------------------|-----------------------------------
Immutability  | IMMUTABILITY_VIOLATION        | update/delete of a ledger row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFLICT IS SUCCESS FOR PASSIVE CALLERS:

    try:
        ledger.append_event(...)
    except RentalEventAlreadyAppliedError:
        pass  # another pass got there first

2. NEVER RETRY A CONFLICT. Only TransientStoreError is retryable.

===============================================================================
"""


class ErpKernelError(Exception):
    """
    Base exception for all ERP kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"


# Validation exceptions (rejected before any I/O)


class ValidationError(ErpKernelError):
    """Base exception for invalid input or configuration."""

    code: str = "VALIDATION_ERROR"


class InvalidPayDayError(ValidationError):
    """Worker pay day is outside the supported 1..28 range."""

    code: str = "INVALID_PAY_DAY"

    def __init__(self, pay_day: object):
        self.pay_day = pay_day
        super().__init__(
            f"Invalid pay day {pay_day!r}: must be an integer between 1 and 28"
        )


class MissingIdentifierError(ValidationError):
    """A required identifier was not supplied."""

    code: str = "MISSING_IDENTIFIER"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required identifier: {field_name}")


class InvalidIdentifierError(ValidationError):
    """An identifier was supplied but is not a UUID."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid identifier for {field_name}: {value!r}")


class InvalidServiceLineError(ValidationError):
    """A service line (or the service as a whole) failed validation."""

    code: str = "INVALID_SERVICE_LINE"

    def __init__(self, line_index: int | None, reason: str):
        self.line_index = line_index
        self.reason = reason
        where = f"line {line_index}" if line_index is not None else "service"
        super().__init__(f"Invalid {where}: {reason}")


# Conflict exceptions


class ConflictError(ErpKernelError):
    """Base exception for uniqueness conflicts on the ledger."""

    code: str = "CONFLICT"


class RentalEventAlreadyAppliedError(ConflictError):
    """
    A structured ledger event already exists for this reference.

    Raised when the store rejects an insert on the unique
    (tenant_id, ref_table, ref_id, reason) index.  Passive callers treat it
    as a successful no-op; operator actions report it as "already applied".
    """

    code: str = "LEDGER_EVENT_ALREADY_APPLIED"

    def __init__(self, tenant_id: str, reason: str, ref_table: str, ref_id: str):
        self.tenant_id = tenant_id
        self.reason = reason
        self.ref_table = ref_table
        self.ref_id = ref_id
        super().__init__(
            f"Ledger event '{reason}' already applied for {ref_table}/{ref_id}"
        )


# Store exceptions


class TransientStoreError(ErpKernelError):
    """
    Network or store failure on read or write.

    Background sync swallows it and tries again on the next trigger;
    operator actions surface the message verbatim.
    """

    code: str = "TRANSIENT_STORE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {operation}: {detail}")


# State exceptions


class StateError(ErpKernelError):
    """Base exception for invalid lifecycle transitions."""

    code: str = "STATE_ERROR"


class ItemNotReturnableError(StateError):
    """Return requested for a rental item that was never started."""

    code: str = "ITEM_NOT_RETURNABLE"

    def __init__(self, service_id: str, item_id: str, state: str):
        self.service_id = service_id
        self.item_id = item_id
        self.state = state
        super().__init__(
            f"Item {item_id} of service {service_id} is not returnable (state={state})"
        )


# Not-found exceptions


class NotFoundError(ErpKernelError):
    """Base exception for missing tenant-scoped entities."""

    code: str = "NOT_FOUND"


class ServiceNotFoundError(NotFoundError):
    """Service does not exist within the tenant."""

    code: str = "SERVICE_NOT_FOUND"

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service not found: {service_id}")


class WorkerNotFoundError(NotFoundError):
    """Worker does not exist within the tenant."""

    code: str = "WORKER_NOT_FOUND"

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        super().__init__(f"Worker not found: {worker_id}")


# Immutability exceptions


class ImmutabilityError(ErpKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    StockMovement and SalaryPayment rows are historical facts.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
