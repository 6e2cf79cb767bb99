"""
Feature modules.

- auth: onboarding/auth flow controller and session
- challenges: challenge templates, per-user progress and live sync
"""
