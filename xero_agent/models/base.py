"""Base model class for immutable report and reconciliation models."""

from pydantic import BaseModel, ConfigDict


class FrozenModel(BaseModel):
    """Pydantic model that cannot be mutated after construction."""

    model_config = ConfigDict(frozen=True)
