"""Event sink adapters delivering CloudEvents over HTTP."""
