"""Webhook receiver adapters.

Provides the HTTP endpoint GitLab calls when a hooked event happens.
"""
