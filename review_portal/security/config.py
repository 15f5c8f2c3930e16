from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    # Key under which the login handler stores the user in the signed session cookie.
    session_key: str = "user"
    login_path: str = "/auth/login"


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_roles: list[str] = Field(default_factory=list)
    require_department: bool = False
    filter_by_department: bool = False


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    required_roles: list[str] = Field(default_factory=list)
    require_department: bool | None = None
    filter_by_department: bool | None = None

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class PermissionRule(BaseModel):
    roles: list[str] = Field(default_factory=list)


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)
    permissions: dict[str, PermissionRule] = Field(default_factory=dict)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_roles: frozenset[str]
    require_department: bool
    filter_by_department: bool


_PATH_PARAM_RE = re.compile(r"\{[^/}]+\}")
_PATH_TAIL_RE = re.compile(r"\{[^/}]+:path\}")


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/admin/{rest:path}"   -> r"^/admin/.+$"
    # "/employees/{id}"      -> r"^/employees/[^/]+$"
    regex = _PATH_TAIL_RE.sub(".+", path_template)
    regex = _PATH_PARAM_RE.sub("[^/]+", regex)
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

        # Prefer exact matches over templates; templates match in file order.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for r in self.model.routes:
            self._exact_rules.setdefault(r.path, []).append(r)
        self._compiled_rules = compiled

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def permissions_for(self, role: str) -> frozenset[str]:
        return frozenset(name for name, perm in self.model.permissions.items() if role in perm.roles)

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        # 1) exact path match
        for candidate in self._exact_rules.get(path, []):
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
            required_roles=frozenset(default.required_roles),
            require_department=default.require_department,
            filter_by_department=default.filter_by_department,
        )


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # Any role or department requirement implies authentication, even if the
    # global default is "public".
    inferred_auth_required = (
        default.auth_required
        or bool(rule.required_roles)
        or bool(rule.require_department)
        or bool(rule.filter_by_department)
    )

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        required_roles=frozenset(rule.required_roles or default.required_roles),
        require_department=default.require_department if rule.require_department is None else rule.require_department,
        filter_by_department=default.filter_by_department
        if rule.filter_by_department is None
        else rule.filter_by_department,
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
