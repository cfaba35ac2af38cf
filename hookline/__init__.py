"""hookline: a GitLab webhook event source for CloudEvents."""

__version__ = "0.1.0"
