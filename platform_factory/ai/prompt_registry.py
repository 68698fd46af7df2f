"""
Prompt templates for the analysis pipeline.

Two templates ship with the package (``requirement_analysis`` and
``specification_synthesis``). Any ``*.yaml`` file in ``PROMPTS_DIR`` with the
same name and version replaces the built-in one, which lets operators tune
prompts without a release::

    name: requirement_analysis
    version: v1
    system: ...
    user: "Input: {{text}}"

Placeholders use ``{{name}}``. Rendering is a single pass, so a value that
itself contains ``{{...}}`` (user text often does) is inserted verbatim.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
DEFAULT_VERSION = "v1"


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    version: str
    system: str
    user: str
    description: str = ""
    source: str = field(default="builtin", compare=False)

    @property
    def placeholders(self) -> set[str]:
        return set(PLACEHOLDER.findall(self.system)) | set(PLACEHOLDER.findall(self.user))

    @classmethod
    def from_yaml(cls, path: Path) -> "PromptTemplate | None":
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            return None
        return cls(
            name=str(data.get("name") or path.stem),
            version=str(data.get("version") or DEFAULT_VERSION),
            system=data.get("system") or "",
            user=data.get("user") or "",
            description=data.get("description") or "",
            source=path.name,
        )

    def render(self, **values) -> list[dict]:
        """Chat messages for this template; empty parts are omitted."""
        messages = []
        for role, text in (("system", self.system), ("user", self.user)):
            content = _fill(text, values)
            if content.strip():
                messages.append({"role": role, "content": content})
        return messages

    def describe(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "source": self.source,
            "placeholders": sorted(self.placeholders),
        }


def _fill(text: str, values: dict) -> str:
    # unknown placeholders are left in place
    return PLACEHOLDER.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), text)


class PromptRegistry:
    """Built-in templates, optionally overridden from a directory of YAML files."""

    def __init__(self, prompts_dir: str | None = None):
        self._templates: dict[tuple[str, str], PromptTemplate] = {
            (tpl.name, tpl.version): tpl for tpl in _DEFAULT_TEMPLATES
        }
        if prompts_dir:
            self._load_overrides(Path(prompts_dir))

    def _load_overrides(self, directory: Path):
        if not directory.is_dir():
            logger.info("PROMPTS_DIR %s does not exist; using built-in prompts", directory)
            return
        for path in sorted(directory.glob("*.yaml")):
            try:
                tpl = PromptTemplate.from_yaml(path)
            except (OSError, yaml.YAMLError) as exc:
                logger.error("Skipping prompt file %s: %s", path.name, exc)
                continue
            if tpl is None:
                logger.warning("Skipping prompt file %s: not a mapping", path.name)
                continue
            self._templates[(tpl.name, tpl.version)] = tpl
            logger.info("Prompt %s/%s loaded from %s", tpl.name, tpl.version, path.name)

    def get(self, name: str, version: str = DEFAULT_VERSION) -> PromptTemplate | None:
        return self._templates.get((name, version))

    def render(self, name: str, version: str = DEFAULT_VERSION, **values) -> list[dict]:
        """Render ``name``/``version`` into chat messages; ``KeyError`` if unknown."""
        tpl = self.get(name, version)
        if tpl is None:
            raise KeyError(f"Unknown prompt template: {name}/{version}")
        return tpl.render(**values)

    def list_templates(self) -> list[dict]:
        return [self._templates[key].describe() for key in sorted(self._templates)]


# ── Built-in Default Templates ────────────────────────────────────────────────

_ANALYSIS_SHAPE = """{
  "intents": [{"action": "create|modify|delete|query|analyze|deploy|configure", "target": "string", "parameters": {}, "confidence": 0.0, "context": []}],
  "entities": {
    "entities": [{"type": "platform|feature|user|data|workflow|integration|security", "value": "string", "confidence": 0.0, "position": {"start": 0, "end": 0}}],
    "relationships": [{"source": "", "target": "", "type": ""}]
  },
  "sentiment": "positive|neutral|negative",
  "urgency": "low|medium|high|critical",
  "complexity": "simple|moderate|complex|enterprise",
  "keywords": [],
  "summary": "",
  "suggestedActions": []
}"""

_SPECIFICATION_SHAPE = """{
  "platform": {"name": "", "type": "web|mobile|desktop|api|hybrid", "compliance": []},
  "architecture": {
    "frontend": {"framework": "", "features": []},
    "backend": {"framework": "", "features": []},
    "database": {"type": "", "schema": []},
    "security": {"level": "", "features": []},
    "infrastructure": {"provider": "", "services": []}
  },
  "features": [{"id": "F-1", "name": "", "description": "", "priority": "must|should|could|wont", "complexity": 5, "estimatedHours": 0, "dependencies": []}],
  "integrations": [{"name": "", "type": "", "required": true}],
  "timeline": {"phases": [{"name": "", "duration": "", "deliverables": []}], "totalEstimate": ""},
  "budget": {"development": 0, "infrastructure": 0, "maintenance": 0, "currency": "USD"}
}"""

_DEFAULT_TEMPLATES = [
    PromptTemplate(
        name="requirement_analysis",
        version="v1",
        description="Extract intents, entities and scope from a bilingual platform request",
        system=(
            "أنت محلل متطلبات متخصص في فهم طلبات المستخدمين وتحويلها إلى مواصفات تقنية.\n"
            "You are a requirements analyst. Requests may be written in Arabic, English or both.\n\n"
            "Extract from the text:\n"
            "1. intents (النوايا): what the user wants to do\n"
            "2. entities (الكيانات): platforms, features, users, data, workflows, integrations, security\n"
            "3. relationships between entities\n"
            "4. urgency and complexity\n"
            "5. keywords\n"
            "6. a short summary in the language of the request\n"
            "7. suggested next actions\n\n"
            "Respond with a single JSON object only, no prose, using exactly this shape:\n"
            + _ANALYSIS_SHAPE
        ),
        user=(
            "Text to analyse / النص:\n"
            '"""\n{{text}}\n"""'
        ),
    ),
    PromptTemplate(
        name="specification_synthesis",
        version="v1",
        description="Turn an analysed request plus sector context into a technical specification",
        system=(
            "أنت مهندس معماري برمجيات تحوّل المتطلبات المحللة إلى مواصفات تقنية كاملة.\n"
            "You are a software architect. Produce a complete technical specification covering:\n"
            "1. platform (name, type, compliance)\n"
            "2. architecture (frontend, backend, database, security, infrastructure)\n"
            "3. features with priority, complexity (1-10) and estimated hours\n"
            "4. integrations\n"
            "5. timeline (phases and total estimate)\n"
            "6. budget\n\n"
            "Respect the sector's regulations and compliance requirements.\n"
            "Respond with a single JSON object only, no prose, using exactly this shape:\n"
            + _SPECIFICATION_SHAPE
        ),
        user=(
            "Analysed requirements / المتطلبات المحللة:\n"
            "```json\n{{analysis_json}}\n```\n\n"
            "Sector context / السياق القطاعي:\n"
            "```json\n{{sector_json}}\n```"
        ),
    ),
]
