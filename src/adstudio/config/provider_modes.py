"""Which generation provider the process talks to.

`GENERATION_PROVIDER` picks the mode (real | fake | off). `USE_FAKE_PROVIDERS`
downgrades "real" to "fake" for local runs but never re-enables "off".
Unrecognised values resolve to "real" so a typo cannot silently fake
production output.
"""

from __future__ import annotations

from typing import Any, Literal

ProviderMode = Literal["real", "fake", "off"]

MODES: tuple[ProviderMode, ...] = ("real", "fake", "off")
_TRUTHY = {"1", "true", "yes", "y", "on"}


def _configured_mode(settings: Any) -> ProviderMode:
    value = str(getattr(settings, "generation_provider", "real")).strip().lower()
    return value if value in MODES else "real"  # type: ignore[return-value]


def _fakes_forced(settings: Any) -> bool:
    value = getattr(settings, "use_fake_providers", False)
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def effective_generation_provider(settings: Any) -> ProviderMode:
    mode = _configured_mode(settings)
    if mode == "real" and _fakes_forced(settings):
        return "fake"
    return mode


def provider_mode_reason(settings: Any) -> str:
    """Explain the resolved mode for `adstudio config show`."""
    mode = _configured_mode(settings)
    if mode == "real" and _fakes_forced(settings):
        return "USE_FAKE_PROVIDERS overrides GENERATION_PROVIDER=real"
    if mode == "real" and not getattr(settings, "wavespeed_api_key", ""):
        return "GENERATION_PROVIDER=real (WAVESPEED_API_KEY missing)"
    return f"GENERATION_PROVIDER={mode}"
