from dataclasses import dataclass
from typing import Dict, List, Optional, Union


@dataclass
class ErrorDetail:
    message: str
    code: str

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"ErrorDetail(message={self.message!r}, code={self.code!r})"


class RehydrateError(Exception):
    """Base exception for all rehydrate errors."""

    default_detail: Union[str, Dict, List] = "A denormalization error occurred."
    default_code: str = "error"

    def __init__(
        self,
        detail: Optional[Union[str, Dict, List]] = None,
        code: Optional[str] = None,
    ):
        detail = detail if detail is not None else self.default_detail
        self.detail = self._normalize_detail(detail, code or self.default_code)
        super().__init__(str(self.detail))

    def _normalize_detail(
        self, detail: Union[str, Dict, List], code: Optional[str]
    ) -> Union[ErrorDetail, Dict, List]:
        """Convert details to ErrorDetail objects recursively."""
        if isinstance(detail, str):
            return ErrorDetail(detail, code or self.default_code)
        elif isinstance(detail, dict):
            return {
                key: self._normalize_detail(value, code)
                for key, value in detail.items()
            }
        elif isinstance(detail, list):
            return [self._normalize_detail(item, code) for item in detail]
        return detail


class MalformedReferenceError(RehydrateError):
    """Raised when a request does not carry enough identity to build a descriptor."""

    default_detail = "Reference must provide both an id and a type."
    default_code = "malformed_reference"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, self.default_code)


class AmbiguousSchemaError(RehydrateError):
    """Raised when a collection mixes schemas and nothing disambiguates them."""

    default_detail = "Collection members disagree on schema."
    default_code = "ambiguous_schema"

    def __init__(self, detail: Optional[Union[str, Dict, List]] = None):
        super().__init__(detail, self.default_code)


class EntityNotFoundError(RehydrateError):
    """Raised when an entity is absent from storage and was never cached."""

    default_detail = "Entity not found."
    default_code = "not_found"

    def __init__(self, detail: Optional[str] = None, descriptor=None):
        self.descriptor = descriptor
        super().__init__(detail, self.default_code)


class ConfigError(Exception):
    """Error raised for configuration issues."""
    pass
