"""Application configuration, user settings and their persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from insights.embedding.encoder import DEFAULT_BASE_URL, DEFAULT_LOCAL_MODEL, DEFAULT_MODEL

LOGGER = logging.getLogger(__name__)

EMBEDDING_PROVIDERS = ("tfidf-local", "ollama", "sentence-transformers", "openai")
DEFAULT_DIGEST_PATH = "INSIGHTS Digest.md"
STATE_DIR_NAME = ".insights"


def _get_default_state_path(vault_path: Path) -> Path:
    """Keep state next to the vault when it exists, else in the user's Documents."""
    if vault_path.is_dir():
        return vault_path / STATE_DIR_NAME / "settings.json"
    return Path.home() / "Documents" / "Insights" / "settings.json"


@dataclass(slots=True)
class AppConfig:
    vault_path: Path = field(default_factory=Path.cwd)
    state_path: Path | None = None

    def __post_init__(self) -> None:
        self.vault_path = Path(self.vault_path).expanduser()
        if self.state_path is None:
            self.state_path = _get_default_state_path(self.vault_path)

    def resolve_state_path(self, base_dir: Path | None = None) -> Path:
        if self.state_path is None:
            self.state_path = _get_default_state_path(self.vault_path)
        if Path(self.state_path).is_absolute() or base_dir is None:
            return Path(self.state_path)
        return base_dir / self.state_path


@dataclass(slots=True)
class OllamaSettings:
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL


@dataclass(slots=True)
class RuminationSettings:
    enabled: bool = True
    interval_minutes: float = 30
    min_similarity: float = 0.25
    use_link_graph_weighting: bool = True
    write_digest: bool = False
    digest_note_path: str = DEFAULT_DIGEST_PATH
    novelty_weight: float = 0.4
    focus_tags: str = ""
    allowed_start_hour: int = 8
    allowed_end_hour: int = 22
    max_repeats_per_pair: int = 3
    bridge_summary: bool = True

    def focus_tag_set(self) -> set[str]:
        return {tag.strip().lower() for tag in self.focus_tags.split(",") if tag.strip()}


@dataclass(slots=True)
class NoveltyEntry:
    count: int = 0
    last_shown: float = 0.0


@dataclass(slots=True)
class RuminationState:
    seen_pairs: Dict[str, NoveltyEntry] = field(default_factory=dict)


@dataclass(slots=True)
class InsightsSettings:
    embedding_provider: str = "tfidf-local"
    index_on_startup: bool = True
    auto_update_on_file_change: bool = True
    recency_half_life_days: float = 30
    max_search_results: int = 20
    local_model: str = DEFAULT_LOCAL_MODEL
    ollama: OllamaSettings = field(default_factory=OllamaSettings)
    rumination: RuminationSettings = field(default_factory=RuminationSettings)
    rumination_state: RuminationState = field(default_factory=RuminationState)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_NESTED = {
    "ollama": OllamaSettings,
    "rumination": RuminationSettings,
}


def _coerce(name: str, kind: str, default: Any, value: Any, strict: bool = False) -> Any:
    """Accept ``value`` only if it fits the declared field ``kind``.

    Int fields take integral floats such as ``5.0`` but never ``5.5``. In
    strict mode a mismatch raises ``ValueError`` instead of keeping ``default``.
    """
    number = isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "bool":
        if isinstance(value, bool):
            return value
    elif kind == "int":
        if number and float(value).is_integer():
            return int(value)
    elif kind == "float":
        if number:
            return value
    elif kind == "str":
        if isinstance(value, str):
            return value
    if strict:
        raise ValueError(f"Invalid value for {name}: {value!r}")
    LOGGER.warning("Ignoring invalid value for %s: %r", name, value)
    return default


def _merge(instance: Any, data: Mapping[str, Any], prefix: str = "", strict: bool = False) -> Any:
    for item in fields(instance):
        if item.name not in data or item.name == "rumination_state":
            continue
        value = data[item.name]
        current = getattr(instance, item.name)
        if item.name in _NESTED:
            if isinstance(value, Mapping):
                _merge(current, value, f"{prefix}{item.name}.", strict)
            elif strict:
                raise ValueError(f"Invalid value for {prefix}{item.name}: {value!r}")
            continue
        setattr(instance, item.name, _coerce(prefix + item.name, item.type, current, value, strict))
    return instance


def _load_state(data: Any) -> RuminationState:
    state = RuminationState()
    pairs = data.get("seen_pairs") if isinstance(data, Mapping) else None
    if not isinstance(pairs, Mapping):
        return state
    for key, entry in pairs.items():
        if not isinstance(entry, Mapping):
            continue
        try:
            novelty = NoveltyEntry(
                count=int(entry.get("count", 0)),
                last_shown=float(entry.get("last_shown", 0.0)),
            )
        except (TypeError, ValueError, OverflowError):
            LOGGER.warning("Ignoring invalid novelty entry for %s: %r", key, entry)
            continue
        state.seen_pairs[str(key)] = novelty
    return state


def settings_from_dict(data: Mapping[str, Any] | None, strict: bool = False) -> InsightsSettings:
    """Merge stored data over defaults; unknown keys are ignored.

    Values of the wrong kind keep their default, or raise ``ValueError`` when
    ``strict`` is set.
    """
    settings = InsightsSettings()
    if not data:
        return settings
    _merge(settings, data, strict=strict)
    if "rumination_state" in data:
        settings.rumination_state = _load_state(data["rumination_state"])
    return settings


def apply_settings_update(settings: InsightsSettings, updates: Mapping[str, Any]) -> InsightsSettings:
    """Validate and apply a partial settings update in place.

    Raises ``ValueError`` for values of the wrong kind or out of range;
    nothing is changed then.
    """
    candidate = settings_from_dict(
        {**settings.to_dict(), **_deep_copy_updates(settings, updates)}, strict=True
    )
    _validate(candidate)
    for item in fields(settings):
        if item.name != "rumination_state":
            setattr(settings, item.name, getattr(candidate, item.name))
    return settings


def _deep_copy_updates(settings: InsightsSettings, updates: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key, value in updates.items():
        if key in _NESTED and isinstance(value, Mapping):
            merged[key] = {**asdict(getattr(settings, key)), **value}
        elif key != "rumination_state":
            merged[key] = value
    return merged


def _validate(settings: InsightsSettings) -> None:
    rumination = settings.rumination
    if settings.embedding_provider not in EMBEDDING_PROVIDERS:
        raise ValueError(f"Unknown embedding provider: {settings.embedding_provider}")
    if settings.recency_half_life_days < 0:
        raise ValueError("recency_half_life_days must be >= 0")
    if settings.max_search_results <= 0:
        raise ValueError("max_search_results must be > 0")
    if rumination.interval_minutes <= 0:
        raise ValueError("rumination.interval_minutes must be > 0")
    if rumination.min_similarity < 0:
        raise ValueError("rumination.min_similarity must be >= 0")
    if not 0 <= rumination.novelty_weight <= 1:
        raise ValueError("rumination.novelty_weight must be between 0 and 1")
    for name in ("allowed_start_hour", "allowed_end_hour"):
        if not 0 <= getattr(rumination, name) <= 23:
            raise ValueError(f"rumination.{name} must be between 0 and 23")
    if rumination.max_repeats_per_pair < 0:
        raise ValueError("rumination.max_repeats_per_pair must be >= 0")
    settings.ollama.base_url = settings.ollama.base_url or DEFAULT_BASE_URL
    settings.ollama.model = settings.ollama.model or DEFAULT_MODEL
    rumination.digest_note_path = rumination.digest_note_path or DEFAULT_DIGEST_PATH


class SettingsStore:
    """JSON persistence for settings plus rumination state."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> InsightsSettings:
        if not self.path.exists():
            return InsightsSettings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.error("Failed to load settings from %s: %s", self.path, exc)
            return InsightsSettings()
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not hold an object, using defaults", self.path)
            return InsightsSettings()
        return settings_from_dict(data)

    def save(self, settings: InsightsSettings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)
