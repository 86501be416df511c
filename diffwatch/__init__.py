"""diffwatch: watch Kubernetes resources and alert on what changed."""

__version__ = "0.1.0"
