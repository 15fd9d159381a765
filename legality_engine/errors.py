"""
Exceptions raised by the legality engine.

Domain violations (limits exceeded) are never raised; they are part of the
returned Verdict. Only malformed inputs and unusable rule sets end up here.
"""

from typing import Any, Optional


class LegalityError(Exception):
    """Base engine exception"""

    def __init__(self, message: str, code: str = "LEGALITY_ERROR", details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InputError(LegalityError):
    """Proposed duty or duty history violates the input contract"""

    def __init__(self, message: str, field: Optional[str] = None, details: Any = None):
        super().__init__(
            message=message,
            code="INPUT_ERROR",
            details={"field": field, **({"info": details} if details else {})},
        )
        self.field = field


class ConfigurationError(LegalityError):
    """Rule configuration is incomplete or inconsistent"""

    def __init__(self, message: str, source: Optional[str] = None, details: Any = None):
        super().__init__(
            message=f"Configuration error: {message}",
            code="CONFIG_ERROR",
            details={"source": source, **({"info": details} if details else {})},
        )
        self.source = source


class UnknownRegimeError(LegalityError):
    """No loaded rule configuration has the requested id"""

    def __init__(self, regime: str):
        super().__init__(
            message=f"Rule configuration '{regime}' not found",
            code="NOT_FOUND",
            details={"regime": regime},
        )
        self.regime = regime
