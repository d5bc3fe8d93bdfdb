"""Webhook-to-issue annotation components.

- Settings loaded from environment / .env
- Structured logging
- Commit message scanning and webhook parsing
- Retried GitHub issue mutations
"""
