from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from helpdesk.security.permissions import PermissionGrant


class AuthConfig(BaseModel):
    provider: str = "dummy"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class _PermissionRequirement(BaseModel):
    # Any one of these `resource:action` grants is enough.
    required_permissions: list[str] = Field(default_factory=list)

    @field_validator("required_permissions")
    @classmethod
    def check_permissions(cls, values: list[str]) -> list[str]:
        # Validate early; keep the string form for readable dumps.
        for raw in values:
            PermissionGrant.parse(raw)
        return values


class DefaultRule(_PermissionRequirement):
    auth_required: bool = True
    require_system_staff: bool = False


class RouteRule(_PermissionRequirement):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    require_system_staff: bool | None = None

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_permissions: frozenset[PermissionGrant]
    require_system_staff: bool


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # Convert "/tickets/{id}" -> r"^/tickets/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class SecurityConfig:
    """
    Runtime helper around validated config + route matching.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        compiled: list[tuple[str, re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            compiled.append((rule.path, _path_template_to_regex(rule.path), rule))

        # Prefer exact matches over templates.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for r in self.model.routes:
            self._exact_rules.setdefault(r.path, []).append(r)
        self._compiled_rules = compiled

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        # 1) exact path match
        exact_candidates = self._exact_rules.get(path, [])
        for candidate in exact_candidates:
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        # 2) template match
        for _template, regex, candidate in self._compiled_rules:
            if method not in candidate.normalized_methods():
                continue
            if regex.match(path):
                return _effective(candidate, default)

        # 3) no match -> defaults
        return EffectiveRule(
            auth_required=default.auth_required,
            required_permissions=_grants(default.required_permissions),
            require_system_staff=default.require_system_staff,
        )


def _grants(values: list[str]) -> frozenset[PermissionGrant]:
    return frozenset(PermissionGrant.parse(v) for v in values)


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # A rule with any requirement is auth-required even if the default is public.
    inferred_auth_required = (
        default.auth_required or bool(rule.required_permissions) or bool(rule.require_system_staff)
    )

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        required_permissions=_grants(rule.required_permissions or default.required_permissions),
        require_system_staff=default.require_system_staff
        if rule.require_system_staff is None
        else rule.require_system_staff,
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
