"""
CLI Context for managing application dependencies.

Holds the settings and (optionally) an injected transport for one CLI
invocation, so commands never read global state and tests can substitute a
fake service.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .client import MantaBucketsClient
from .settings import Settings, create_settings_from_env
from .storage.base import Transport


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Settings are loaded from the environment on first use, so ``--help``
    works without any MANTA_* variables set.
    """
    settings: Optional[Settings] = None
    transport: Optional[Transport] = None

    def client(self) -> MantaBucketsClient:
        """Create a client for one command; the caller closes it."""
        if self.settings is None:
            self.settings = create_settings_from_env()
        return MantaBucketsClient(self.settings, transport=self.transport)
