"""Registry policy — loads registry_policy.json and exposes every
configurable decision as a typed method call.

No magic. No defaults. If a value is missing from the config, it fails loud.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from govassets.models.ministry import SeatKind

POLICY_FILE = "registry_policy.json"


@dataclass(frozen=True)
class SeatLimits:
    """Seat capacity given to every newly created ministry."""
    max_uploaders: int
    max_approvers: int

    def for_kind(self, kind: SeatKind) -> int:
        return self.max_uploaders if kind is SeatKind.UPLOADER else self.max_approvers


@dataclass(frozen=True)
class CategoryPolicy:
    """Resolved policy for one asset category."""
    name: str
    required_fields: tuple[str, ...]


@dataclass(frozen=True)
class TokenPolicy:
    issuer: str
    max_age_seconds: int


class RegistryPolicy:
    """Loads and resolves registry policy.

    Usage:
        policy = RegistryPolicy.from_config_dir(Path("config"))
        limits = policy.seat_limits()
        motor = policy.category("Motor Vehicle")
    """

    def __init__(self, config: dict[str, Any]) -> None:
        self._config = config
        self._validate()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> RegistryPolicy:
        """Load from the canonical config directory."""
        return cls(_load_json(config_dir / POLICY_FILE))

    def _validate(self) -> None:
        if "version" not in self._config:
            raise ValueError(f"{POLICY_FILE} missing version")
        for section in ("seat_limits", "token", "asset", "categories"):
            if section not in self._config:
                raise ValueError(f"{POLICY_FILE} missing section: {section}")
        limits = self.seat_limits()
        if limits.max_uploaders < 1 or limits.max_approvers < 1:
            raise ValueError("Seat limits must be positive")
        if not self._config["categories"]:
            raise ValueError("At least one asset category must be configured")

    @property
    def version(self) -> str:
        return self._config["version"]

    # ------------------------------------------------------------------
    # Seat accounting
    # ------------------------------------------------------------------

    def seat_limits(self) -> SeatLimits:
        sl = self._config["seat_limits"]
        return SeatLimits(
            max_uploaders=sl["max_uploaders"],
            max_approvers=sl["max_approvers"],
        )

    # ------------------------------------------------------------------
    # Asset categories
    # ------------------------------------------------------------------

    def category_names(self) -> list[str]:
        return sorted(self._config["categories"])

    def has_category(self, name: str) -> bool:
        return name in self._config["categories"]

    def category(self, name: str) -> CategoryPolicy:
        """Get the policy for a category. Raises ValueError if unknown."""
        c = self._config["categories"].get(name)
        if c is None:
            raise ValueError(f"Unknown asset category: {name}")
        return CategoryPolicy(
            name=name,
            required_fields=tuple(c["required_fields"]),
        )

    def min_purchase_cost(self) -> float:
        return self._config["asset"]["min_purchase_cost"]

    def min_purchase_year(self) -> int:
        return self._config["asset"]["min_purchase_year"]

    # ------------------------------------------------------------------
    # Capability tokens
    # ------------------------------------------------------------------

    def token_policy(self) -> TokenPolicy:
        t = self._config["token"]
        return TokenPolicy(
            issuer=t["issuer"],
            max_age_seconds=t["max_age_seconds"],
        )


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file or raise with clear path."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
