"""Install a service mesh onto Kubernetes and manage its configuration."""

__version__ = "0.1.0"
