"""Paste and stream detection."""

from .classifier import ChangeClassifier, ChangeTrackingState, DetectionKind
from .fingerprint import LineFingerprint, line_fingerprint, unreviewed_lines

__all__ = [
    "ChangeClassifier",
    "ChangeTrackingState",
    "DetectionKind",
    "LineFingerprint",
    "line_fingerprint",
    "unreviewed_lines",
]
