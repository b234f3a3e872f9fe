"""
Bridge between pydantic model validation and the engine's ValidationError

Callers of the engine only ever catch budget_enforcer errors; pydantic's
own exception type stays an implementation detail.
"""

from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from budget_enforcer.kernel.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def build_validated(model_cls: type[M], data: dict[str, Any]) -> M:
    """
    Validate data into model_cls, re-raising failures as ValidationError

    The first failing field is reported; pydantic's message is kept.
    """
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or model_cls.__name__
        raise ValidationError(field, first.get("msg", "invalid value")) from exc
