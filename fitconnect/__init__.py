"""
FitConnect flow core.

Client-side onboarding/auth flow controller and live challenge
progress synchronization over an external document store.
"""

__version__ = "0.1.0"
