from typing import Any

from pydantic_core import to_jsonable_python

from ..contracts import SerializedOutput

_BUILTINS = (str, int, float, bool, list, tuple, dict)


class OutputSerializer:
    """
    Serialize a step output so it can be stored in the step history.

    Returns:
        SerializedOutput carrying the data plus the type and module needed to rebuild it.
    """

    @staticmethod
    def serialize(output: Any) -> SerializedOutput:
        if output is None:
            return SerializedOutput(data=None, type="NoneType", module="builtins")

        output_type = type(output).__name__
        output_module = type(output).__module__

        if isinstance(output, _BUILTINS):
            return SerializedOutput(
                data=to_jsonable_python(output), type=output_type, module="builtins"
            )

        if hasattr(output, "model_dump") and callable(output.model_dump):
            try:
                return SerializedOutput(
                    data=output.model_dump(mode="json"),
                    type=output_type,
                    module=output_module,
                )
            except Exception as e:
                raise ValueError(f"Failed to serialize Pydantic model {output_type}: {e}")

        try:
            return SerializedOutput(
                data=to_jsonable_python(vars(output)),
                type=output_type,
                module=output_module,
            )
        except Exception as e:
            raise ValueError(
                f"Cannot serialize step output of type '{output_type}' from module '{output_module}': {e}"
            )
