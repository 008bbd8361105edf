class NameLexError(Exception):
    """Base class for errors raised inside the expansion core."""


class ConfigurationError(NameLexError):
    """Remote credentials are missing; callers degrade to the local graph."""


class TransientRemoteError(NameLexError):
    """Timeout, network failure or non-2xx answer from the inference endpoint."""


class ParseError(NameLexError):
    """The model answer did not contain a usable list of names."""


class GraphLoadError(NameLexError):
    """The nickname seed file is missing or malformed."""
