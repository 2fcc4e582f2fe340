"""Base Pydantic model configuration for conformix models.

All conformix data models inherit from ConformixBaseModel:
- Immutability (frozen=True) so snapshots can be shared across worker threads
- Strict validation (extra="forbid") to catch stale cache files and typos
"""

from pydantic import BaseModel, ConfigDict


class ConformixBaseModel(BaseModel):
    """Base model for all conformix snapshots and reports.

    Example:
        >>> class Sample(ConformixBaseModel):
        ...     name: str
        >>> Sample(name="probe").name
        'probe'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=False,
        validate_default=True,
    )
