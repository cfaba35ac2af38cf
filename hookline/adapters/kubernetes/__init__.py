"""Kubernetes adapters.

Every adapter in this package talks to the API server through a shared
KubeApiClient built on kubernetes_asyncio.
"""
