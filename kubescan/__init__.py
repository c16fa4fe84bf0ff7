"""Building blocks for Kubernetes security posture scanning: policy sources, reports, summaries and output."""

__version__ = "0.1.0"