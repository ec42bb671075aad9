"""
Normalization context and checked model construction.

Normalizers are pure functions of ``(payload, context)``. The capture
time lives in the context, taken once by the adapter per request, so
normalizing the same payload twice yields equal values.
"""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from src.exchange.errors import NormalizationError
from src.exchange.model.currency import CurrencyPair

M = TypeVar("M", bound=BaseModel)


class NormalizeContext(BaseModel):
    """What a normalizer knows besides the payload."""

    pair: CurrencyPair
    received_at: datetime

    model_config = ConfigDict(frozen=True)


def build_model(model_cls: type[M], **fields: Any) -> M:
    """
    Construct a canonical model, reporting violations as NormalizationError.

    Args:
        model_cls: Canonical model class (Order, SubAccount, ...)
        **fields: Field values read from the venue payload

    Returns:
        Validated model instance

    Raises:
        NormalizationError: If the values break a model invariant

    """
    try:
        return model_cls(**fields)
    except ValidationError as e:
        raise NormalizationError(
            f"Invalid {model_cls.__name__} from venue payload: {e}"
        ) from e


def decode_model(model_cls: type[M], payload: Any) -> M:
    """
    Validate a raw venue payload into its typed decode model.

    Raises:
        NormalizationError: If the payload does not match the venue schema

    """
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        raise NormalizationError(
            f"Payload does not match {model_cls.__name__}: {e}"
        ) from e
