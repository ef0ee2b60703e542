"""
Metrics Ingestion - Numeric Field Extractor.

============================================================
RESPONSIBILITY
============================================================
Reads one numeric value out of a detail document, whatever
JSON encoding the upstream chose for it:

- a bare number                       {"viewCount": 42}
- a quoted number                     {"viewCount": "42"}
- a single match from a ``#`` path    ["42"] or ['"42"']

Absent fields are not errors. Present fields that are not
numbers are: they mean the upstream schema changed under us.

============================================================
NUMERIC SEMANTICS
============================================================
Integral sources stay ``int`` (no precision loss for large
counters); anything with a fraction or exponent is ``float``.

============================================================
"""

import math
import re
from typing import Any, Optional, Union

from metrics_ingestion.exceptions import MalformedNumericFieldError
from metrics_ingestion.paths import MISSING, resolve
from metrics_ingestion.transport import decode_json_body
from metrics_ingestion.types import NumericValue


_INTEGER = re.compile(r"^[+-]?\d+$")
_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Wrapping left behind by multi-match path evaluators
_WRAPPING_CHARS = '[]"'


class NumericFieldExtractor:
    """
    Tolerant numeric extraction from decoded or raw JSON documents.

    Stateless; one instance may be shared by concurrent item tasks.
    """

    def __init__(self, source_name: Optional[str] = None) -> None:
        self._source_name = source_name

    def extract_raw(self, body: Union[bytes, str], path: str) -> Optional[NumericValue]:
        """
        Extract a field from an undecoded response body.

        Raises:
            MalformedResponseError: If the body is not valid JSON
            MalformedNumericFieldError: If the field is present but not numeric
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        document = decode_json_body(body, source_name=self._source_name)
        return self.extract(document, path)

    def extract(self, document: Any, path: str) -> Optional[NumericValue]:
        """
        Extract a field from a decoded JSON document.

        Args:
            document: Decoded JSON
            path: Dotted field path

        Returns:
            NumericValue, or None when the path matches nothing

        Raises:
            MalformedNumericFieldError: If the field is present but not numeric
        """
        value = resolve(document, path)
        if value is MISSING or value is None:
            return None

        if isinstance(value, list):
            return self._from_matches(value, path)

        return self._coerce(value, path, raw=value)

    def _from_matches(self, matches: list, path: str) -> Optional[NumericValue]:
        if not matches:
            return None
        if len(matches) > 1:
            raise MalformedNumericFieldError(
                message=f"Field matched {len(matches)} values, expected one",
                field_path=path,
                raw_value=matches,
                source_name=self._source_name,
            )

        element = matches[0]
        if element is None:
            return None
        if isinstance(element, str):
            return self._parse_string(element.strip().strip(_WRAPPING_CHARS), path, raw=matches)
        return self._coerce(element, path, raw=matches)

    def _coerce(self, value: Any, path: str, raw: Any) -> NumericValue:
        # bool is an int subclass but never a JSON number
        if isinstance(value, bool):
            raise MalformedNumericFieldError(
                message="Field is a boolean, expected a number",
                field_path=path,
                raw_value=raw,
                source_name=self._source_name,
            )
        if isinstance(value, int):
            return NumericValue.of(value)
        if isinstance(value, float):
            return self._finite(value, path, raw=raw)
        if isinstance(value, str):
            return self._parse_string(value.strip(), path, raw=raw)

        raise MalformedNumericFieldError(
            message=f"Field is a {type(value).__name__}, expected a number",
            field_path=path,
            raw_value=raw,
            source_name=self._source_name,
        )

    def _parse_string(self, text: str, path: str, raw: Any) -> NumericValue:
        if _INTEGER.match(text):
            return NumericValue.of(int(text))
        if _DECIMAL.match(text):
            return self._finite(float(text), path, raw=raw)

        raise MalformedNumericFieldError(
            message=f"Field value {text!r} is not a number",
            field_path=path,
            raw_value=raw,
            source_name=self._source_name,
        )

    def _finite(self, value: float, path: str, raw: Any) -> NumericValue:
        # Exponents past the float range parse as inf
        if not math.isfinite(value):
            raise MalformedNumericFieldError(
                message=f"Field value {raw!r} overflows a float",
                field_path=path,
                raw_value=raw,
                source_name=self._source_name,
            )
        return NumericValue.of(value)
