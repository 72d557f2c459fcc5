import importlib
from typing import Any

from pydantic import BaseModel

from ..contracts import SerializedOutput


class OutputDeserializer:
    """
    Reconstruct a step output captured by :class:`OutputSerializer`.

    Supports:
    - Pydantic models
    - Builtin JSON values
    - Plain classes accepting their attributes as keyword arguments
    """

    @staticmethod
    def deserialize(serialized: SerializedOutput) -> Any:
        if serialized.module == "builtins":
            if serialized.type == "tuple" and serialized.data is not None:
                return tuple(serialized.data)
            return serialized.data

        if not serialized.type or not serialized.module:
            raise ValueError("Missing output type or module metadata")

        try:
            module = importlib.import_module(serialized.module)
            output_class = getattr(module, serialized.type)

            if issubclass(output_class, BaseModel):
                return output_class.model_validate(serialized.data)

            return output_class(**serialized.data)

        except Exception as e:
            raise ValueError(
                f"Failed to reconstruct step output '{serialized.type}' from module '{serialized.module}': {e}"
            )
