from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from blake3 import blake3
from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True)
class TemplateRenderResult:
    template_id: str
    template_hash: str
    text: str


class TemplateLoader:
    def __init__(self, *, base_path: Path | None = None) -> None:
        self._base_path = base_path or TEMPLATE_DIR
        self._env = _build_environment(self._base_path)

    def render(self, template_id: str, context: dict[str, Any]) -> TemplateRenderResult:
        normalized = _normalize_template_id(template_id)
        template = self._env.get_template(normalized)
        text = template.render(**context)
        source = self._get_template_source(normalized)
        template_hash = blake3(source.encode("utf-8")).hexdigest()
        return TemplateRenderResult(template_id=normalized, template_hash=template_hash, text=text)

    def _get_template_source(self, template_id: str) -> str:
        source, _filename, _uptodate = self._env.loader.get_source(self._env, template_id)
        return source


def _build_environment(base_path: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(base_path)),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["pyrepr"] = repr
    return env


def _normalize_template_id(template_id: str) -> str:
    template_id = template_id.strip().lstrip("/")
    if not template_id.endswith(".j2"):
        template_id = template_id + ".j2"
    return template_id


__all__ = ["TEMPLATE_DIR", "TemplateLoader", "TemplateRenderResult"]
