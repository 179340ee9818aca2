"""Prompt template version contracts."""

import hashlib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from string import Formatter


@dataclass(frozen=True)
class PromptSpec:
    """Prompt definition with immutable version contract."""

    prompt_id: str
    version: str
    filename: str
    required_placeholders: tuple[str, ...]


@dataclass(frozen=True)
class PromptTemplate:
    """Loaded prompt template with digest."""

    prompt_id: str
    version: str
    path: Path
    text: str
    sha256: str

    @property
    def short_hash(self) -> str:
        """Return a short hash for compact log usage."""
        return self.sha256[:12]

    def render(self, **values: object) -> str:
        """Substitute placeholders; values are inserted verbatim."""
        return self.text.format(**values)


PROMPT_SPECS: dict[str, PromptSpec] = {
    "system_persona": PromptSpec(
        prompt_id="system_persona",
        version="v1",
        filename="system_persona_v1.md",
        required_placeholders=(),
    ),
    "daily_summary": PromptSpec(
        prompt_id="daily_summary",
        version="v1",
        filename="daily_summary_v1.md",
        required_placeholders=("date", "data_text"),
    ),
    "workout_summary": PromptSpec(
        prompt_id="workout_summary",
        version="v1",
        filename="workout_summary_v1.md",
        required_placeholders=("date", "data_text"),
    ),
    "text_summary": PromptSpec(
        prompt_id="text_summary",
        version="v1",
        filename="text_summary_v1.md",
        required_placeholders=("paragraphs", "text"),
    ),
}

_PROMPTS_DIR = Path(__file__).parent / "prompts"
_FORMATTER = Formatter()


def dataset_version_for_text(text: str) -> str:
    """Build a stable dataset version from normalized rendered text."""
    normalized = "\n".join(line.rstrip() for line in text.strip().splitlines())
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"sha256:{digest[:16]}"


def _validate_placeholders(prompt_text: str, required: tuple[str, ...]) -> None:
    found = {
        field_name
        for _, field_name, _, _ in _FORMATTER.parse(prompt_text)
        if field_name is not None
    }
    missing = [name for name in required if name not in found]
    if missing:
        msg = ", ".join(missing)
        raise ValueError(f"Prompt missing required placeholders: {msg}")


@lru_cache(maxsize=16)
def load_prompt_template(prompt_id: str) -> PromptTemplate:
    """Load prompt template from versioned file and validate placeholders."""
    spec = PROMPT_SPECS[prompt_id]
    path = _PROMPTS_DIR / spec.filename
    text = path.read_text(encoding="utf-8").strip()
    _validate_placeholders(text, spec.required_placeholders)
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return PromptTemplate(
        prompt_id=spec.prompt_id,
        version=spec.version,
        path=path,
        text=text,
        sha256=digest,
    )
