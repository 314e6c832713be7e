# upload_scrubber/errors.py
"""
Failures raised inside the stripping engine.

Strippers and fallback steps raise these and catch them again at their own
boundary; callers of the Dispatcher only ever see a StripOutcome.
"""


class ScrubError(Exception):
    pass


class DecodeFailure(ScrubError):
    """The bytes do not parse as the sniffed format."""


class LimitExceeded(DecodeFailure):
    """The input is larger than the configured size, pixel or frame limit."""


class UnsupportedVariant(ScrubError):
    """The format parses but the runtime cannot re-encode it."""


class EncodeFailure(ScrubError):
    """Decoding worked but producing or writing the stripped output did not."""


class ToolUnavailable(ScrubError):
    pass


class ToolExecutionFailure(ScrubError):
    pass
