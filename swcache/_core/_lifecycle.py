from __future__ import annotations

import enum


class EngineState(enum.Enum):
    """
    Lifecycle of one generation, shared by the async and sync engines.
    """

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"
