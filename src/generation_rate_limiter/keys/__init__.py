# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""API key selection and quota-failure tracking shared across processes."""

from .credentials import CredentialProvider, EnvironmentCredentials, StaticCredentials
from .store import KeyRotationStore

__all__ = [
    "CredentialProvider",
    "EnvironmentCredentials",
    "KeyRotationStore",
    "StaticCredentials",
]
