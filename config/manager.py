"""Configuration manager: load, save and validate the engine configuration.

Uses ruamel.yaml for YAML serialization with comments.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.prompt import Confirm
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import ComposerConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML COMMENTS ───

_YAML_HEADER = f"""\
# ============================================
# Class Composer: engine configuration
# Version: 1.0
# Created: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "criteria": (
        "Composition criteria",
        "Hard bounds: group sizes and tolerated spreads. All values must be positive.",
    ),
    "options": (
        "Grouping options",
        "optimize_for: content | social | progress | balanced (all strategies).",
    ),
    "engine": (
        "Engine",
        "Thread pool, provider retries and cache lifetime.",
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "composer_config.yaml"
    SCENARIOS_DIR = Path("scenarios")

    def first_run_check(self) -> bool:
        """True if no configuration exists yet."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Load ───

    def load(self, path: Optional[Path] = None) -> ComposerConfig:
        """Loads the YAML config; validated by Pydantic."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {target}\n"
                f"Run 'python main.py config init' first."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            return ComposerConfig.model_validate(dict(raw or {}))
        except Exception as e:
            raise ValueError(
                f"Invalid configuration file: {target}\n"
                f"Pydantic error: {e}"
            ) from e

    def load_or_default(self, path: Optional[Path] = None) -> ComposerConfig:
        """Like load(), but falls back to the defaults when no file exists."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            return ComposerConfig()
        return self.load(target)

    # ─── Save ───

    def save(self, config: ComposerConfig, path: Optional[Path] = None) -> None:
        """Saves the config as commented YAML."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Configuration saved: {target}")

    def _build_commented_yaml(self, config: ComposerConfig) -> CommentedMap:
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        if "engine" in cm:
            engine_map = CommentedMap(cm["engine"])
            if "time_limit_seconds" in engine_map:
                engine_map.yaml_add_eol_comment("null = no limit", "time_limit_seconds")
            cm["engine"] = engine_map

        return cm

    # ─── Scenarios ───

    def save_scenario(self, config: ComposerConfig, name: str,
                      description: str = "", overwrite: bool = False) -> None:
        """Saves a config as a named scenario."""
        self.SCENARIOS_DIR.mkdir(parents=True, exist_ok=True)
        path = self.SCENARIOS_DIR / f"{name}.yaml"
        if path.exists() and not overwrite:
            if not Confirm.ask(
                f"Scenario '{name}' already exists. Overwrite?", default=False
            ):
                console.print("[yellow]Aborted.[/yellow]")
                return
        self.save(config, path)
        if description:
            meta_path = self.SCENARIOS_DIR / f"{name}.meta.yaml"
            with open(meta_path, "w", encoding="utf-8") as f:
                yaml.dump({"name": name, "description": description,
                           "created": date.today().isoformat()}, f)
        console.print(f"[green]✓[/green] Scenario '{name}' saved.")

    def list_scenarios(self) -> list[dict]:
        if not self.SCENARIOS_DIR.exists():
            return []
        scenarios = []
        for p in sorted(self.SCENARIOS_DIR.glob("*.yaml")):
            if p.stem.endswith(".meta"):
                continue
            meta_path = self.SCENARIOS_DIR / f"{p.stem}.meta.yaml"
            description = ""
            created = ""
            if meta_path.exists():
                with open(meta_path, "r", encoding="utf-8") as f:
                    meta = yaml.load(f)
                    description = meta.get("description", "")
                    created = str(meta.get("created", ""))
            scenarios.append({
                "name": p.stem,
                "path": str(p),
                "description": description,
                "created": created,
            })
        return scenarios

    def load_scenario(self, name: str) -> ComposerConfig:
        path = self.SCENARIOS_DIR / f"{name}.yaml"
        if not path.exists():
            raise FileNotFoundError(
                f"Scenario '{name}' not found. "
                f"Available: {[s['name'] for s in self.list_scenarios()]}"
            )
        return self.load(path)
