class GenerationError(Exception):
    """Base class for failures talking to the text-generation model."""


class TransientGenerationError(GenerationError):
    """The model stream could not be opened or dropped before completion."""


class ModelConfigurationError(GenerationError):
    """The configured model provider cannot be used (e.g. missing API key)."""
