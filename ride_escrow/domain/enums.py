"""Domain enumerations and state-transition rules."""

import enum


class RideState(str, enum.Enum):
    REQUESTED = "Requested"
    ACCEPTED = "Accepted"
    FUNDED = "Funded"
    STARTED = "Started"
    COMPLETED_BY_DRIVER = "CompletedByDriver"
    FINALIZED = "Finalized"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# State machine: maps current state -> set of valid next states
RIDE_TRANSITIONS: dict[RideState, set[RideState]] = {
    RideState.REQUESTED: {RideState.ACCEPTED, RideState.CANCELLED},
    RideState.ACCEPTED: {
        RideState.FUNDED,
        RideState.CANCELLED,
        RideState.REFUNDED,
    },
    RideState.FUNDED: {
        RideState.STARTED,
        RideState.CANCELLED,
        RideState.REFUNDED,
    },
    RideState.STARTED: {RideState.COMPLETED_BY_DRIVER},
    RideState.COMPLETED_BY_DRIVER: {RideState.FINALIZED},
    RideState.FINALIZED: set(),
    RideState.CANCELLED: set(),
    RideState.REFUNDED: set(),
}

TERMINAL_STATES = frozenset(
    state for state, allowed in RIDE_TRANSITIONS.items() if not allowed
)

# States in which the fare sits in escrow
ESCROW_STATES = frozenset(
    {RideState.FUNDED, RideState.STARTED, RideState.COMPLETED_BY_DRIVER}
)

CANCELLABLE_STATES = frozenset(
    {RideState.REQUESTED, RideState.ACCEPTED, RideState.FUNDED}
)


class RefundType(int, enum.Enum):
    NONE = 0
    NOT_FUNDED = 1
    NOT_STARTED = 2


class Role(str, enum.Enum):
    RIDER = "rider"
    DRIVER = "driver"
    STRANGER = "stranger"
