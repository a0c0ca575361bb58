"""Parser configuration.

Settings are plain dataclasses passed into every parse call. They can be
built in code or loaded from a YAML file:

    default_headers:
      User-Agent: reqtext
    form_param_encoding_strategy: always   # automatic | never | always
    workspace_root: /home/me/project
    line_ending: "\\r\\n"                  # detected from the document when unset
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import yaml


class FormParamEncodingStrategy(enum.Enum):
    """How form-urlencoded bodies are percent-encoded."""

    AUTOMATIC = "automatic"
    NEVER = "never"
    ALWAYS = "always"


def _default_headers() -> dict[str, str]:
    return {"User-Agent": "reqtext"}


@dataclass
class RestClientSettings:
    default_headers: dict[str, str] = field(default_factory=_default_headers)
    form_param_encoding_strategy: FormParamEncodingStrategy = (
        FormParamEncodingStrategy.AUTOMATIC
    )
    workspace_root: str | None = None
    # None: use "\r\n" when the document contains it, else "\n"
    line_ending: str | None = None

    @classmethod
    def from_yaml(cls, path: str) -> "RestClientSettings":
        """Load settings from a YAML file.

        Keys that are absent keep their defaults.

        Raises:
            ValueError: If the file is not valid YAML, is not a mapping,
                has non-mapping default headers or names an unknown
                encoding strategy.
        """
        with open(path, "r", encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in settings file {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a mapping: {path}")

        settings = cls()
        if "default_headers" in data:
            headers = data["default_headers"] or {}
            if not isinstance(headers, dict):
                raise ValueError(
                    f"default_headers must be a mapping of name to value: {path}"
                )
            settings.default_headers = {str(k): str(v) for k, v in headers.items()}
        if "form_param_encoding_strategy" in data:
            settings.form_param_encoding_strategy = FormParamEncodingStrategy(
                str(data["form_param_encoding_strategy"]).lower()
            )
        if data.get("workspace_root"):
            settings.workspace_root = str(data["workspace_root"])
        if data.get("line_ending"):
            settings.line_ending = str(data["line_ending"])
        return settings
