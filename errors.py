# Exceptions shared by the WasteWise classifier modules
# The verdict engine raises them, the orchestration layer in waste_classifier.py decides what to do with them

from typing import Any, Dict, List, Optional


class WasteWiseError(Exception):
    """Base exception for all WasteWise errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._get_default_error_code()
        self.context: Dict[str, Any] = context or {}
        self.suggestions: List[str] = suggestions or []
        self.recoverable = recoverable

    def _get_default_error_code(self) -> str:
        return "WASTEWISE_ERROR"

    def add_context(self, key: str, value: Any) -> "WasteWiseError":
        if key:
            self.context[key] = value
        return self

    def add_suggestion(self, suggestion: str) -> "WasteWiseError":
        if suggestion:
            self.suggestions.append(suggestion)
        return self

    def __str__(self) -> str:
        base = self.message or ""
        if self.suggestions:
            return f"{base} -- Suggestions: {'; '.join(self.suggestions)}"
        return base


class ConfigurationError(WasteWiseError):
    def __init__(self, message: str, *, config_field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field

    def _get_default_error_code(self) -> str:
        return "CONFIGURATION_ERROR"

    def __str__(self) -> str:
        base = self.message or ""
        if self.config_field:
            base = f"[{self.config_field}] {base}"
        if self.suggestions:
            return f"{base} -- Suggestions: {'; '.join(self.suggestions)}"
        return base


class ModelUnavailable(WasteWiseError):
    """The image classifier could not be downloaded or loaded."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)

    def _get_default_error_code(self) -> str:
        return "MODEL_UNAVAILABLE"


class InferenceFailure(WasteWiseError):
    """Decoding, preprocessing or running the classifier failed for one image."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)

    def _get_default_error_code(self) -> str:
        return "INFERENCE_FAILURE"


class IndexOutOfRange(WasteWiseError, IndexError):
    """A category map entry points past the end of the probability vector."""

    def __init__(self, class_index: int, vector_length: int, **kwargs):
        super().__init__(
            f"Class index {class_index} is out of range for a probability vector of length {vector_length}",
            **kwargs
        )
        self.class_index = class_index
        self.vector_length = vector_length
        self.add_context("class_index", class_index)
        self.add_context("vector_length", vector_length)
        self.add_suggestion("Re-derive the category map for the classifier in use")

    def _get_default_error_code(self) -> str:
        return "INDEX_OUT_OF_RANGE"
