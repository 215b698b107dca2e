"""Error types shared across the photo tagger."""


class PhotoTaggerError(Exception):
    """Base class for application errors."""


class ConfigurationMissing(PhotoTaggerError):
    """A required external credential or URL is not configured."""


class ValidationError(PhotoTaggerError):
    """A request is missing a required field or carries a bad value."""


class BackendUnavailable(PhotoTaggerError):
    """A call to the tag store or the file store failed."""


class NotFound(PhotoTaggerError):
    """An operation referenced an id absent from the store."""
