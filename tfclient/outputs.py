"""
Parsing of declared output values printed by `terraform output -json`.

Expected shape: one JSON object mapping each output name to a record
{"type": ..., "value": ..., "sensitive": bool}. The value is kept as the
plain decoded JSON value; type and sensitive are metadata only.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

from .exceptions import ParseError


@dataclass(frozen=True)
class OutputValue:
    """One declared output. Sensitive values are not redacted."""
    value: Any
    type: Any = None
    sensitive: bool = False


def parse_outputs(text: str) -> Dict[str, OutputValue]:
    """
    Parse captured stdout into output records.

    Args:
        text: Full captured stdout

    Returns:
        Mapping of output name to OutputValue

    Raises:
        ParseError: If the text is not JSON or does not match the record shape
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as e:
        raise ParseError(f"Failed to parse JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object of outputs, got {type(data).__name__}")

    outputs: Dict[str, OutputValue] = {}
    for name, record in data.items():
        if not isinstance(record, dict):
            raise ParseError(f"Output '{name}' must be an object, got {type(record).__name__}")
        if "value" not in record:
            raise ParseError(f"Output '{name}' is missing 'value'")

        sensitive = record.get("sensitive", False)
        if not isinstance(sensitive, bool):
            raise ParseError(f"Output '{name}' has non-boolean 'sensitive'")

        # The tool prints either a type name or a type expression list
        output_type = record.get("type")
        if output_type is not None and not isinstance(output_type, (str, list)):
            raise ParseError(f"Output '{name}' has invalid 'type'")

        outputs[name] = OutputValue(value=record["value"], type=output_type, sensitive=sensitive)

    return outputs


def flatten_outputs(outputs: Dict[str, OutputValue]) -> Dict[str, Any]:
    """Drop type/sensitive metadata, keeping name -> value."""
    return {name: output.value for name, output in outputs.items()}
