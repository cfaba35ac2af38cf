"""GitLab REST API adapters.

Implements WebhookClientPort for project hooks and group hooks, plus the
factory selecting between them by scope.
"""
