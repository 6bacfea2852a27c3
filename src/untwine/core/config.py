"""Application settings: config sections, sources and templates."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from untwine.core.base import BaseConfig
from untwine.core.log import Logger
from untwine.core.yaml_settings import (
    CONFIG_FILENAME,
    YamlWithIncludesSettingsSource,
)

# Modules usable in templates: {platformdirs.user_log_dir}, {os.getcwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

_TEMPLATE = re.compile(r'\{([A-Za-z._]+)\}')


class ProjectConfig(BaseConfig):
    """Source tree to scan and rewrite."""

    root: Path = Field(
        default_factory=Path.cwd,
        description="Project root directory (defaults to the current directory)",
    )
    source_patterns: list[str] = Field(
        default_factory=lambda: ["*.cs"],
        description="Glob patterns of source files to scan",
    )
    exclude_dirs: list[str] = Field(
        default_factory=lambda: ["bin", "obj", ".git", ".vs", ".untwine"],
        description="Directory names skipped while scanning",
    )
    encoding: str = Field(
        default="utf-8",
        description="Source file encoding",
    )

    @field_validator("root")
    @classmethod
    def _absolute_root(cls, value: Path) -> Path:
        return value.expanduser().absolute()


class BuildConfig(BaseConfig):
    """External build invocation."""

    command: str = Field(
        default=(
            "dotnet build {solution} --configuration {configuration} "
            "--verbosity {verbosity}"
        ),
        description=(
            "Build command template; {solution}, {configuration} and "
            "{verbosity} are filled in per run"
        ),
    )
    solution: str | None = Field(
        default=None,
        description="Solution or project file passed to the build",
    )
    configuration: str = Field(
        default="Debug",
        description="Build configuration (Debug, Release, ...)",
    )
    verbosity: str = Field(
        default="normal",
        description="Build output verbosity",
    )
    timeout: int = Field(
        default=600,
        description="Build timeout in seconds",
    )
    output_dir: Path = Field(
        default=Path("{config.project.root}/.untwine/logs"),
        description=(
            "Directory for build log files "
            "(supports {config.*} templates)"
        ),
    )
    assembly: str | None = Field(
        default=None,
        description=(
            "Assembly file name expected under bin/<configuration> "
            "after a successful build"
        ),
    )
    checks: dict[str, str] = Field(
        default_factory=dict,
        description="Named commands run after a successful build",
    )


class BackupConfig(BaseConfig):
    """Backup sessions taken before files are rewritten."""

    enabled: bool = Field(
        default=True,
        description="Back up files before rewriting them",
    )
    root: Path = Field(
        default=Path("{config.project.root}/.untwine/backups"),
        description="Backup root directory (supports {config.*} templates)",
    )
    catalog_name: str = Field(
        default="backup_metadata.json",
        description="Catalog file name inside the backup root",
    )
    max_age_days: int = Field(
        default=30,
        description="Age after which cleanup removes a session",
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance"
    )
    project: ProjectConfig = Field(
        default_factory=ProjectConfig,
        description="Project source tree settings",
    )
    build: BuildConfig = Field(
        default_factory=BuildConfig,
        description="Build validation settings",
    )
    backup: BackupConfig = Field(
        default_factory=BackupConfig,
        description="Backup and rollback settings",
    )
    log_level: str = Field(
        default="info",
        alias="log-level",
        description=(
            "Console log level: 'spew', 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir("untwine", appauthor=False))
        ),
        description="Root directory for log files",
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Replace the bootstrap logger with the configured one."""
        from untwine.core.log import ConsoleSink, Logger, setup_logger
        from untwine.core.yaml_settings import _cleanup_bootstrap_logger

        if self.logger is None:
            self.logger = Logger(
                level=self.log_level,
                console=ConsoleSink(level=self.log_level),
            )

        setup_logger(
            log_root=self.log_root,
            run_name=self.project.root.name or "untwine",
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
            level=self.logger.level,
        )
        _cleanup_bootstrap_logger()

        return self

    def close(self):
        from untwine.core.log import logger
        logger.close()
        super().close()


class State(BaseSettings):
    """Settings object handed to every command.

    Sources, highest priority first: constructor arguments, YAML
    (defaults, user, ./untwine.yaml, --include), .env, environment
    (UNTWINE_CONFIG__BUILD__CONFIGURATION=Release), secrets.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file=CONFIG_FILENAME,
        env_file=".env",
        env_prefix="UNTWINE_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Expand {config.*}, {platformdirs.*} and {os.*} templates in
        every string and Path, in field order."""
        self._substitute_recursive(self)
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i in range(len(obj)):
                obj[i] = self._substitute_value(obj[i])

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            text = str(value)
            substituted = self._substitute_string(text)
            return value if substituted == text else Path(substituted)
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
        return value

    def _substitute_string(self, value: str) -> str:
        """Replace {dotted.path} references; unknown ones are kept
        verbatim so command placeholders like {solution} survive.

        "{config.project.root}/.untwine/logs" → "/src/app/.untwine/logs"
        "{platformdirs.user_log_dir}" → "~/.local/state/untwine/log"
        """
        def replace(match):
            parts = match.group(1).split(".")
            module = TEMPLATE_NAMESPACE.get(parts[0])
            obj = module if module is not None else self
            if module is not None:
                parts = parts[1:]

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = (
                        obj("untwine", appauthor=False)
                        if module is platformdirs
                        else obj()
                    )
            except (AttributeError, TypeError):
                return match.group(0)
            return str(obj)

        return _TEMPLATE.sub(replace, value)


__all__ = [
    "BackupConfig",
    "BuildConfig",
    "Config",
    "ProjectConfig",
    "State",
]
