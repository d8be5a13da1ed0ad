class BuildError(RuntimeError):
    pass


class ConfigError(BuildError):
    """Required input is missing or unusable."""


class FetchError(BuildError):
    """A remote document could not be retrieved."""


class ParseError(BuildError):
    """A document was retrieved but is not the expected JSON."""


class PatternExtractionError(BuildError):
    """An environment's os string does not carry the expected version."""

    def __init__(self, field: str, value: str | None, pattern: str):
        super().__init__(f"Unable to extract version from {field}={value!r} using {pattern}")
        self.field = field
        self.value = value
        self.pattern = pattern


class RemoteAPIError(BuildError):
    pass
