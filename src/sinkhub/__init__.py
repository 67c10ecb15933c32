"""sinkhub: multi-sink telemetry dispatch engine.

One application event (log record, metric sample or trace span) is fanned
out through independently configured sink pipelines, each with its own
wire format, sampling election, privacy filtering and delivery transport.
"""

__version__ = "0.1.0"
