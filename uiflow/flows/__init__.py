"""
Reusable workflow builders.
"""

from uiflow.flows.login import (
    Credentials,
    LoginPage,
    build_fake_login_workflow,
    build_invalid_login_workflow,
    build_login_workflow,
)

__all__ = [
    "Credentials",
    "LoginPage",
    "build_fake_login_workflow",
    "build_invalid_login_workflow",
    "build_login_workflow",
]
