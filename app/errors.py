"""Error taxonomy shared by the addon components."""

from __future__ import annotations


class AddonError(Exception):
    """Base class for failures that are absorbed at a component boundary."""


class FormatError(AddonError):
    """Raised for malformed configuration tokens or encrypted blobs."""


class AuthenticationError(AddonError):
    """Raised when an encrypted blob fails authentication."""


class ExternalToolError(AddonError):
    """Raised when yt-dlp fails or produces unusable output."""


class CredentialHarvestError(AddonError):
    """Raised when Google token refresh or browser cookie harvesting fails."""
