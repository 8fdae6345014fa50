from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

# Locator strategies produced by event-driven helpers; resolution against a driver
# belongs to the UI layer.
Strategy = Literal["xpath"]
StrategyValue = tuple[Strategy, str]


def _require(v: str | None, what: str) -> str:
    if v is None:
        raise ValueError(f"Locator by {what} is not specified and is null.")
    return v


def by_text(v: str | None) -> StrategyValue:
    v = _require(v, "text")
    return ("xpath", f".//*[@text = '{v}']")


def by_label(v: str | None) -> StrategyValue:
    v = _require(v, "label")
    return ("xpath", f".//*[contains(@label,'{v}')]")


@dataclass(frozen=True)
class PageElement:
    """Cross-platform locator: one strategy per platform."""

    android: StrategyValue | None = None
    ios: StrategyValue | None = None

    def get(self, platform: str) -> StrategyValue:
        """
        Locator for "android" or "ios".

        Raises:
            ValueError: If the locator for the platform is not specified.
        """
        p = (platform or "").lower()
        if p == "android" and self.android:
            return self.android
        if p == "ios" and self.ios:
            return self.ios
        if p in ("android", "ios"):
            raise ValueError(f"Locator for {p} is not specified")
        raise ValueError(f"Unknown platform: {p}")
