class RelayError(Exception):
    """Base class for errors raised by the relay core."""


class MalformedMessage(RelayError):
    """An inbound frame could not be parsed into a message envelope."""


class SendError(RelayError):
    """A frame could not be handed to a recipient's connection."""
