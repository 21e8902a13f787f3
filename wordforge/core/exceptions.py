from __future__ import annotations

"""Exception classes for package assembly and loading.

Errors fall into a few families that callers can catch as a group:

* :class:`CapacityError` - an asset quota would be exceeded.
* :class:`ReferentialError` - an identifier points at something that does not
  exist (a definition, a parent comment, a relationship).
* :class:`StructuralProtocolError` - a multi-stage encoding is incomplete.
* :class:`ValidationError` - a value is outside its allowed domain.

Everything derives from :class:`WordforgeError`.
"""

from typing import Optional


class WordforgeError(Exception):
    """Base exception for all wordforge errors.

    ``part`` names the package part involved, when there is one.
    """

    def __init__(self, message: str, part: Optional[str] = None,
                 cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.part = part
        self.cause = cause

    def __str__(self) -> str:
        if self.part:
            return f"[Part: {self.part}] {super().__str__()}"
        return super().__str__()


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


class CapacityError(WordforgeError):
    """Raised when registering an asset would exceed a configured quota.

    ``remediation`` carries human-readable advice on how to get under the
    limit; it is appended to the message.
    """

    def __init__(self, message: str, limit: float, actual: float,
                 remediation: str = "", part: Optional[str] = None) -> None:
        full = f"{message}\n\n{remediation}" if remediation else message
        super().__init__(full, part)
        self.limit = limit
        self.actual = actual
        self.remediation = remediation


class ImageCountLimitError(CapacityError):
    """Too many images registered."""


class ImageSizeLimitError(CapacityError):
    """A single image is larger than the per-image limit."""


class TotalImageSizeLimitError(CapacityError):
    """The combined size of all images is over the limit."""


# ---------------------------------------------------------------------------
# Referential
# ---------------------------------------------------------------------------


class ReferentialError(WordforgeError):
    """Raised when an identifier references a missing entity."""

    def __init__(self, message: str, reference: Optional[object] = None,
                 part: Optional[str] = None) -> None:
        super().__init__(message, part)
        self.reference = reference


class UnknownAbstractNumberingError(ReferentialError):
    """A numbering instance names an abstract definition that is not registered."""


class UnknownCommentError(ReferentialError):
    """A reply names a parent comment that is not registered."""


class PackageIntegrityError(ReferentialError):
    """The assembled package contains dangling references.

    ``problems`` lists every defect found, not only the first.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        summary = "; ".join(self.problems[:5])
        if len(self.problems) > 5:
            summary += f"; ... ({len(self.problems) - 5} more)"
        super().__init__(f"Package failed integrity validation: {summary}")


# ---------------------------------------------------------------------------
# Structural protocols
# ---------------------------------------------------------------------------


class StructuralProtocolError(WordforgeError):
    """Raised when an ordered multi-stage encoding is incomplete or out of order."""


class IncompleteFieldError(StructuralProtocolError):
    """A complex field is missing a stage or has its stages out of order."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(WordforgeError):
    """Raised when a value is outside its allowed domain."""


class NumberingValidationError(ValidationError):
    pass


class StyleValidationError(ValidationError):
    pass


class StyleReferenceError(StyleValidationError):
    """A style inherits or links, directly or through others, to itself."""

    def __init__(self, message: str, cycle: Optional[list[str]] = None) -> None:
        super().__init__(message, "word/styles.xml")
        self.cycle = list(cycle or [])


class ContentControlError(ValidationError):
    pass


class FieldValidationError(ValidationError):
    pass


# ---------------------------------------------------------------------------
# Element tree, assets, registry, import
# ---------------------------------------------------------------------------


class XmlParseError(WordforgeError):
    """Raised when a part's XML text is not well formed."""


class XmlBuildError(WordforgeError):
    """Raised when a tree cannot be serialized (e.g. an undeclared prefix)."""


class ImageNotLoadedError(WordforgeError):
    """Raised when image bytes are requested before they were loaded."""

    def __init__(self, filename: Optional[str] = None) -> None:
        name = filename or "image"
        super().__init__(f"Image data for '{name}' is not loaded; call ensure_data_loaded() first")
        self.filename = filename


class ImageLoadError(WordforgeError):
    """Raised when an image source cannot be read."""


class UnknownIdSpaceError(WordforgeError):
    """Raised when an identifier is requested from an unregistered id space."""


class PackageImportError(WordforgeError):
    """Raised when an existing package cannot be read."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 cause: Optional[Exception] = None) -> None:
        super().__init__(message, cause=cause)
        self.file_path = file_path


__all__ = [
    "WordforgeError",
    "CapacityError",
    "ImageCountLimitError",
    "ImageSizeLimitError",
    "TotalImageSizeLimitError",
    "ReferentialError",
    "UnknownAbstractNumberingError",
    "UnknownCommentError",
    "PackageIntegrityError",
    "StructuralProtocolError",
    "IncompleteFieldError",
    "ValidationError",
    "NumberingValidationError",
    "StyleValidationError",
    "StyleReferenceError",
    "ContentControlError",
    "FieldValidationError",
    "XmlParseError",
    "XmlBuildError",
    "ImageNotLoadedError",
    "ImageLoadError",
    "UnknownIdSpaceError",
    "PackageImportError",
]
