from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from swcache._core._classifier import ClassificationRules

DEFAULT_LIBRARY_OFFLINE_MESSAGE = "Offline - library not available"
DEFAULT_APP_OFFLINE_MESSAGE = "Offline - content not available"


@dataclass
class EngineOptions:
    """
    Configuration of one cache generation.

    Attributes:
    ----------
    generation : str
        Opaque version identifier. It names the store this engine populates
        and serves from. Every other store is considered stale on activation.

        Examples:
        --------
        >>> options = EngineOptions(generation="v2.1.0")

    manifest : list[str]
        Ordered resource locators fetched and stored at installation.
        Relative locators are resolved against ``origin``.

        Examples:
        --------
        >>> options = EngineOptions(
        ...     generation="v2.1.0",
        ...     origin="https://app.example.com",
        ...     manifest=["/", "/index.html"],
        ... )

    origin : str | None
        Base URL used to resolve relative manifest locators.

    rules : ClassificationRules
        Rule table deciding which strategy handles a request.

    skip_waiting : bool
        When True, a successful installation activates the generation right
        away instead of waiting for the host to call ``on_activate``.

    storable_methods : list[str]
        Request methods whose responses are looked up in and written to the
        store. Responses to other methods are passed through untouched.

    library_offline_message : str
        Body of the synthetic 503 produced by the cache-first strategy.

    app_offline_message : str
        Body of the synthetic 503 produced by the network-first strategy.
    """

    generation: str
    manifest: List[str] = field(default_factory=list)
    origin: Optional[str] = None
    rules: ClassificationRules = field(default_factory=ClassificationRules)
    skip_waiting: bool = False
    storable_methods: List[str] = field(default_factory=lambda: ["GET"])
    library_offline_message: str = DEFAULT_LIBRARY_OFFLINE_MESSAGE
    app_offline_message: str = DEFAULT_APP_OFFLINE_MESSAGE
