"""Exceptions raised inside the relay."""


class RelayError(Exception):
    """Base class for relay errors"""


class InvalidFrameError(RelayError):
    """Inbound WebSocket frame could not be parsed or classified"""


class SessionAlreadyStartedError(RelayError):
    """An agent stream session was started twice"""
