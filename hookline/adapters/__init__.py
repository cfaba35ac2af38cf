"""External adapters for the hookline GitLab event source.

This package contains all external dependencies (httpx, aiohttp, the
Kubernetes and GitLab REST APIs) and provides implementations of the core
port interfaces.

Adapter Organization:

- gitlab/: GitLab project and group hook clients
- kubernetes/: Secrets, Knative services, sinks, events and GitLabSource objects
- sink/: CloudEvents delivery to the sink
- webhook/: HTTP receiver for inbound GitLab webhook calls
- scheduler/: Periodic resync driving the reconciler
"""
