"""Role-based access context for dashboard screens.

This module defines:
- Screen: the screens a user may be allowed to open
- ScreenRule: which roles may open a screen
- AccessPolicy: loads rules and resolves a role to its screens
- AccessContext: capabilities resolved once per session and passed
  explicitly into each operation

Rules come from ACCESS_POLICY_PATH when set; otherwise DEFAULT_RULES apply.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Screen(str, Enum):
    """Screens gated by role."""

    DASHBOARD = "dashboard"
    REQUIREMENTS = "requirements"
    CLIENTS = "clients"
    PRINTERS = "printers"
    SKUS = "skus"
    COMPATIBILITIES = "compatibilities"


class AccessDenied(PermissionError):
    """Raised when a context lacks the screen an operation needs."""


class ScreenRule(BaseModel):
    """Roles allowed to open one screen."""

    screen: Screen
    roles: list[str] = Field(default_factory=list)

    def allows(self, role: str | None) -> bool:
        return role is not None and role in self.roles


DEFAULT_RULES: list[ScreenRule] = [
    ScreenRule(
        screen=Screen.DASHBOARD,
        roles=["master", "especialista", "edistribucion", "esuministros", "adistribucion"],
    ),
    ScreenRule(
        screen=Screen.REQUIREMENTS,
        roles=[
            "master",
            "especialista",
            "operador",
            "edistribucion",
            "esuministros",
            "adistribucion",
            "adm",
        ],
    ),
    ScreenRule(screen=Screen.CLIENTS, roles=["master", "esuministros"]),
    ScreenRule(screen=Screen.PRINTERS, roles=["master", "adm"]),
    ScreenRule(screen=Screen.SKUS, roles=["master", "edistribucion"]),
    ScreenRule(screen=Screen.COMPATIBILITIES, roles=["master", "especialista"]),
]


@dataclass(frozen=True, slots=True)
class AccessContext:
    """Capabilities of one authenticated session."""

    user_id: str
    role: str | None
    screens: frozenset[Screen]

    def can(self, screen: Screen) -> bool:
        return screen in self.screens

    def require(self, screen: Screen) -> None:
        """Raise AccessDenied unless the session may open ``screen``."""
        if not self.can(screen):
            raise AccessDenied(
                f"Role {self.role or '(none)'} may not access {screen.value}"
            )


class AccessPolicy:
    """Resolves roles to permitted screens.

    Loads rules from ACCESS_POLICY_PATH if provided; otherwise uses
    DEFAULT_RULES.
    """

    def __init__(
        self,
        rules: list[ScreenRule] | None = None,
        policy_path: str | None = None,
    ) -> None:
        path = policy_path or os.getenv("ACCESS_POLICY_PATH")
        if rules is not None:
            self._rules = list(rules)
        elif path and os.path.exists(path):
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            self._rules = [ScreenRule(**r) for r in data.get("rules", [])]
            logger.info("access.policy.loaded", extra={"path": path, "rules": len(self._rules)})
        else:
            self._rules = list(DEFAULT_RULES)

    @property
    def rules(self) -> list[ScreenRule]:
        return list(self._rules)

    def screens_for(self, role: str | None) -> frozenset[Screen]:
        return frozenset(rule.screen for rule in self._rules if rule.allows(role))

    def context_for(self, user_id: str, role: str | None) -> AccessContext:
        """Build the AccessContext for a session."""
        return AccessContext(user_id=user_id, role=role, screens=self.screens_for(role))
