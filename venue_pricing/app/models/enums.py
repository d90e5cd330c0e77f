"""
Pricing enumerations.

String enums so that stored documents and API payloads keep their wire values.
"""

import enum


class EntityLevel(str, enum.Enum):
    """
    Hierarchy tier a ratesheet or surge config is bound to.

    Levels:
        CUSTOMER: Top of the hierarchy
        LOCATION: Belongs to one Customer
        SUBLOCATION: Belongs to one Location
        EVENT: Orthogonal anchor, only matched when a booking names the event
    """
    CUSTOMER = "CUSTOMER"
    LOCATION = "LOCATION"
    SUBLOCATION = "SUBLOCATION"
    EVENT = "EVENT"


class RatesheetType(str, enum.Enum):
    """Ratesheet type enumeration."""
    TIMING_BASED = "TIMING_BASED"  # Priced via timeWindows
    DURATION_BASED = "DURATION_BASED"  # Priced via durationRules
    SURGE_MULTIPLIER = "SURGE_MULTIPLIER"  # Materialized surge layer


class ConflictResolution(str, enum.Enum):
    """Tie-break policy among equally ranked ratesheets."""
    PRIORITY = "PRIORITY"
    HIGHEST_PRICE = "HIGHEST_PRICE"
    LOWEST_PRICE = "LOWEST_PRICE"


class ApprovalStatus(str, enum.Enum):
    """Ratesheet approval workflow status."""
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class WindowType(str, enum.Enum):
    """Time window evaluation mode."""
    ABSOLUTE_TIME = "ABSOLUTE_TIME"  # Clock time, repeats per local day
    DURATION_BASED = "DURATION_BASED"  # Minutes from booking start


class DayOfWeek(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class RecurrencePattern(str, enum.Enum):
    """Calendar days a ratesheet runs on, checked against the booking's local date."""
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"  # daysOfWeek
    MONTHLY = "MONTHLY"  # dayOfMonth
    YEARLY = "YEARLY"
