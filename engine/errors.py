class PlaybackError(ValueError):
    """Base class for errors reported by the playback engine."""


class InvalidArgumentError(PlaybackError):
    """A control operation received an argument it cannot act on."""


class MalformedInputError(PlaybackError):
    """An event sequence could not be loaded."""
