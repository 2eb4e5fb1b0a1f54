class TimezoneError(ValueError):
    """
    Base class for every error raised while naming or resolving a time zone.
    """


class InvalidTimezoneError(TimezoneError):
    """The zone identifier is unknown or cannot be parsed."""


class InvalidOffsetError(TimezoneError):
    """A numeric or signed offset string is malformed or out of range."""


class CouldNotResolveTimezoneError(TimezoneError):
    """The zone data yielded no period for a reason other than a gap."""


class InvalidDatetimeError(TimezoneError):
    """The civil fields or datetime supplied by the caller are unusable."""


class InvalidPeriodError(TimezoneError):
    """A period violates its own invariants; the zone data is corrupt."""


class ConversionError(TimezoneError):
    """Converting between zones failed to settle on a single offset."""
