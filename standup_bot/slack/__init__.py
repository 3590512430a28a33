"""Slack-facing code: the Bolt app, handlers, block builders and the API gateway."""
