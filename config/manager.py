"""
Config Resolver for the pricing optimizer.

Loads three cascading YAML layers (global < category < per-SKU override) plus
the reference tables (gold SKUs, manual locks, families) and resolves the
effective ``OptimizerConfig`` for a SKU. Tables are cached in memory for a
fixed TTL; ``reload_config`` forces a refresh.

A missing or unparseable file never aborts the pipeline: the affected layer
degrades to empty and the hardcoded defaults apply.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from models.reference import FamilyDefinition, ManualLock, SKUOverride
from utils.env import get_config_dir
from utils.logger import get_logger
from utils.time_utils import utc_now

from .config import CACHE_TTL_SECONDS, OptimizerConfig, check_layer_values, validate_layer

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent

GLOBAL_LAYER = "global"
CATEGORY_LAYER = "categories"
OVERRIDES_LAYER = "overrides"

LAYER_FILES = {
    GLOBAL_LAYER: "global.yaml",
    CATEGORY_LAYER: "category.yaml",
    OVERRIDES_LAYER: "sku_overrides.yaml",
}

# Layers whose top level is a flat mapping that can be patched key by key
PATCHABLE_LAYERS = (GLOBAL_LAYER, CATEGORY_LAYER)


class ConfigUpdateError(ValueError):
    """Raised when an administrative config update is rejected."""


def load_yaml_file(path: Path) -> Any | None:
    """Parse a YAML file, returning None (with a warning) when it cannot be read."""
    try:
        with open(path, encoding="utf-8") as fh:
            return yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load config file {path}: {e}")
        return None


def _as_mapping(value: Any, source: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning(f"Ignoring {source}: expected a mapping, got {type(value).__name__}")
        return {}
    return value


def _as_list(value: Any, source: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning(f"Ignoring {source}: expected a list, got {type(value).__name__}")
        return []
    return value


def merge_config_layers(
    global_layer: dict,
    category_layer: dict | None = None,
    override_layer: dict | None = None,
) -> dict:
    """
    Shallow-merge the three config layers in fixed order.
    Later layers override only the keys they define; an override's own
    ``sku`` key is never merged.
    """
    merged = dict(global_layer)
    if category_layer:
        merged.update(category_layer)
    if override_layer:
        merged.update({k: v for k, v in override_layer.items() if k != "sku"})
    return merged


@dataclass(frozen=True)
class ConfigTables:
    """All configuration data, parsed and validated."""

    global_config: OptimizerConfig = field(default_factory=OptimizerConfig)
    categories: dict[str, dict] = field(default_factory=dict)
    gold_skus: frozenset[str] = frozenset()
    manual_locks: dict[str, ManualLock] = field(default_factory=dict)
    sku_overrides: dict[str, SKUOverride] = field(default_factory=dict)
    families: dict[str, FamilyDefinition] = field(default_factory=dict)

    @classmethod
    def from_raw(
        cls,
        global_layer: Any = None,
        category_layer: Any = None,
        overrides_file: Any = None,
    ) -> "ConfigTables":
        """Validate raw (YAML-shaped) layers into tables, skipping bad entries."""
        global_values = validate_layer(_as_mapping(global_layer, "global layer"), "global layer")
        defaults = OptimizerConfig().to_dict()
        global_config = OptimizerConfig.from_mapping(
            merge_config_layers(defaults, global_values)
        )

        categories: dict[str, dict] = {}
        for key, values in _as_mapping(category_layer, "category layer").items():
            if isinstance(values, dict):
                categories[str(key).lower()] = validate_layer(values, f"category '{key}'")
            else:
                logger.warning(f"Ignoring category '{key}': expected a mapping")

        overrides = _as_mapping(overrides_file, "sku overrides")
        gold_skus = frozenset(
            str(s)
            for s in _as_list(overrides.get("gold_skus"), "gold_skus")
            + _as_list(overrides.get("super_gold_skus"), "super_gold_skus")
        )

        manual_locks: dict[str, ManualLock] = {}
        for raw in _as_list(overrides.get("manual_locks"), "manual_locks"):
            lock = _validate(ManualLock, raw, "manual lock")
            if lock is not None:
                manual_locks[lock.sku] = lock

        sku_overrides: dict[str, SKUOverride] = {}
        for raw in _as_list(overrides.get("custom"), "custom"):
            override = _validate(SKUOverride, raw, "sku override")
            if override is not None:
                values = validate_layer(override.values(), f"override for {override.sku}")
                sku_overrides[override.sku] = SKUOverride(
                    sku=override.sku, reason=override.reason, **values
                )

        families: dict[str, FamilyDefinition] = {}
        for raw in _as_list(overrides.get("families"), "families"):
            family = _validate(FamilyDefinition, raw, "family definition")
            if family is not None:
                families[family.family_id] = family

        return cls(
            global_config=global_config,
            categories=categories,
            gold_skus=gold_skus,
            manual_locks=manual_locks,
            sku_overrides=sku_overrides,
            families=families,
        )


def _validate(model, raw: Any, label: str):
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping invalid {label} {raw!r}: {e.error_count()} error(s)")
        return None


def _value_problems(values: dict, prefix: str) -> list[str]:
    _, errors = check_layer_values(values)
    return [f"{prefix}{key}: {message}" for key, message in errors.items()]


def find_layer_problems(kind: str, parsed: Any) -> list[str]:
    """Describe every entry of a parsed layer that loading would drop."""
    if parsed is None:
        return []
    if not isinstance(parsed, dict):
        return [f"expected a mapping, got {type(parsed).__name__}"]
    if kind == GLOBAL_LAYER:
        return _value_problems(parsed, "")

    problems: list[str] = []
    if kind == CATEGORY_LAYER:
        for name, values in parsed.items():
            if isinstance(values, dict):
                problems.extend(_value_problems(values, f"{name}."))
            else:
                problems.append(f"{name}: expected a mapping")
        return problems

    for section in ("gold_skus", "super_gold_skus"):
        if not isinstance(parsed.get(section) or [], list):
            problems.append(f"{section}: expected a list")
    sections = (("manual_locks", ManualLock), ("custom", SKUOverride), ("families", FamilyDefinition))
    for section, model in sections:
        entries = parsed.get(section) or []
        if not isinstance(entries, list):
            problems.append(f"{section}: expected a list")
            continue
        for i, raw in enumerate(entries):
            try:
                entry = model.model_validate(raw)
            except ValidationError as e:
                problems.append(f"{section}[{i}]: {e.error_count()} error(s)")
                continue
            if isinstance(entry, SKUOverride):
                problems.extend(_value_problems(entry.values(), f"{section}[{i}]."))
    return problems


class YamlConfigLoader:
    """Reads the three layer files from a config directory."""

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    def layer_path(self, kind: str) -> Path:
        return self.config_dir / LAYER_FILES[kind]

    def __call__(self) -> ConfigTables:
        return ConfigTables.from_raw(
            load_yaml_file(self.layer_path(GLOBAL_LAYER)),
            load_yaml_file(self.layer_path(CATEGORY_LAYER)),
            load_yaml_file(self.layer_path(OVERRIDES_LAYER)),
        )


@dataclass
class ConfigCache:
    tables: ConfigTables
    loaded_at: datetime


class ConfigResolver:
    """
    Owns the config cache and answers per-SKU config questions.

    Args:
        config_dir: Directory with the YAML layers. Defaults to
            ``OPTIMIZER_CONFIG_DIR`` or the shipped ``config/`` directory.
        ttl_seconds: How long loaded tables are reused.
        clock: Source of "now" (aware UTC by default), injectable for tests.
        loader: Callable returning ``ConfigTables``; defaults to a YAML loader.
    """

    def __init__(
        self,
        config_dir: Path | str | None = None,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        loader: Callable[[], ConfigTables] | None = None,
    ):
        self.config_dir = Path(config_dir) if config_dir else get_config_dir(DEFAULT_CONFIG_DIR)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._yaml_loader = YamlConfigLoader(self.config_dir)
        self._loader = loader or self._yaml_loader
        self._cache: ConfigCache | None = None

    @classmethod
    def from_tables(cls, tables: ConfigTables, **kwargs) -> "ConfigResolver":
        """Resolver over fixed in-memory tables."""
        return cls(loader=lambda: tables, **kwargs)

    # --- Cache management --- #

    def _refresh(self) -> ConfigCache:
        logger.info("Loading optimizer configuration...")
        tables = self._loader()
        self._cache = ConfigCache(tables=tables, loaded_at=self._clock())
        logger.info(
            f"Loaded: {len(tables.gold_skus)} gold SKUs, {len(tables.manual_locks)} locks, "
            f"{len(tables.families)} families, {len(tables.categories)} categories"
        )
        return self._cache

    def _tables(self) -> ConfigTables:
        cache = self._cache
        if cache is None or (self._clock() - cache.loaded_at).total_seconds() > self.ttl_seconds:
            cache = self._refresh()
        return cache.tables

    def reload_config(self) -> None:
        """Drop the cache and load everything again immediately."""
        self._cache = None
        self._refresh()

    # --- Config resolution --- #

    def get_config(self, sku: str, category: str) -> OptimizerConfig:
        """Effective config for a SKU: global < category < sku override."""
        tables = self._tables()
        category_layer = tables.categories.get((category or "").lower())
        override = tables.sku_overrides.get(sku)
        merged = merge_config_layers(
            tables.global_config.to_dict(),
            validate_layer(category_layer, f"category '{category}'") if category_layer else None,
            validate_layer(override.values(), f"override for {sku}") if override else None,
        )
        return OptimizerConfig.from_mapping(merged)

    def get_global_config(self) -> OptimizerConfig:
        return self._tables().global_config

    def get_category_configs(self) -> dict[str, dict]:
        return dict(self._tables().categories)

    def get_cooldown_days(self, sku: str, category: str) -> int:
        config = self.get_config(sku, category)
        if self.is_gold_sku(sku):
            return config.cooldown_price_days_gold
        return config.cooldown_price_days

    def get_max_price_step(self, sku: str, category: str) -> float:
        config = self.get_config(sku, category)
        if self.is_gold_sku(sku):
            return config.max_price_step_pct_gold
        return config.max_price_step_pct

    # --- Reference tables --- #

    def is_gold_sku(self, sku: str) -> bool:
        return sku in self._tables().gold_skus

    def get_gold_skus(self) -> list[str]:
        return sorted(self._tables().gold_skus)

    def get_manual_lock(self, sku: str) -> ManualLock | None:
        return self._tables().manual_locks.get(sku)

    def is_manual_locked(self, sku: str, now: datetime | None = None) -> bool:
        """True only if a lock exists and has not yet expired."""
        lock = self.get_manual_lock(sku)
        if lock is None:
            return False
        return lock.is_active(now or self._clock())

    def get_family_for_sku(self, sku: str) -> FamilyDefinition | None:
        for family in self._tables().families.values():
            if sku in family.skus:
                return family
        return None

    def get_all_families(self) -> list[FamilyDefinition]:
        return list(self._tables().families.values())

    # --- Administrative updates --- #

    def update_layer(self, kind: str, content: str) -> Path:
        """
        Replace a layer file with new YAML text, keeping a timestamped backup
        of the previous file, then reload.
        """
        if kind not in LAYER_FILES:
            raise ConfigUpdateError(f"Unknown config type: {kind}")
        try:
            parsed = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigUpdateError(f"Invalid YAML: {e}") from e
        problems = find_layer_problems(kind, parsed)
        if problems:
            raise ConfigUpdateError(f"Invalid {kind} config: {'; '.join(problems)}")

        path = self._yaml_loader.layer_path(kind)
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            stamp = int(self._clock().timestamp() * 1000)
            backup = path.with_name(f"{path.name}.backup.{stamp}")
            backup.write_text(path.read_text(encoding="utf-8"), encoding="utf-8")
            logger.info(f"Backed up {path.name} to {backup.name}")

        path.write_text(content, encoding="utf-8")
        logger.info(f"Config {kind} updated")
        self.reload_config()
        return path

    def patch_layer(self, kind: str, updates: dict) -> list[str]:
        """Shallow-update keys of a flat layer file without replacing the rest."""
        if kind not in PATCHABLE_LAYERS:
            raise ConfigUpdateError(f"Patch not supported for type: {kind}")
        if not updates:
            raise ConfigUpdateError("No updates given")

        path = self._yaml_loader.layer_path(kind)
        current = _as_mapping(load_yaml_file(path) if path.exists() else None, str(path))
        current.update(updates)
        content = yaml.safe_dump(current, sort_keys=False, allow_unicode=True, width=120)
        self.update_layer(kind, content)
        return list(updates)
