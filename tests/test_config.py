"""Tests for the configuration system and the data models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from config.defaults import (
    CONTENT_DURATIONS,
    MATERIAL_CONTENT_TYPES,
    default_config,
    default_criteria,
    default_options,
    difficulty_for,
)
from config.manager import ConfigManager
from config.schema import (
    CompatibilityPolicy,
    ComposerConfig,
    CompositionCriteria,
    EngineSettings,
    OptimizeFor,
    ScoringWeights,
)
from data.fake_data import FakeStudentGenerator
from models.composition import ClassComposition, ClassType, CompositionResult, OptimizerStatus
from models.content import ContentItem, ContentType, CourseType
from models.dataset import StudentDataset


# ─── Defaults ─────────────────────────────────────────────────────────────────

class TestDefaultConfig:
    def test_default_criteria(self):
        c = default_criteria()
        assert (c.min_students, c.max_students) == (2, 9)
        assert c.max_difficulty_variance == 3.0
        assert c.max_progress_gap == 30.0

    def test_default_options(self):
        o = default_options()
        assert o.optimize_for == OptimizeFor.BALANCED
        assert o.allow_individual_classes is True
        assert o.max_iterations == 100

    def test_default_config_matches_schema_defaults(self):
        assert default_config() == ComposerConfig()

    def test_content_metadata_complete(self):
        for content_type in ContentType:
            assert content_type in CONTENT_DURATIONS
        assert set(MATERIAL_CONTENT_TYPES.values()) <= set(ContentType)

    def test_difficulty_clamped(self):
        assert difficulty_for(1, 1) == 1
        assert difficulty_for(3, 2) == 5
        assert difficulty_for(9, 4) == 10


# ─── Pydantic validation ──────────────────────────────────────────────────────

class TestPydanticValidation:
    def test_max_below_min_raises(self):
        with pytest.raises(ValidationError):
            CompositionCriteria(min_students=4, max_students=3)

    @pytest.mark.parametrize("field", [
        "max_students", "min_students", "max_difficulty_variance", "max_progress_gap",
        "content_compatibility_threshold", "peer_compatibility_weight",
    ])
    def test_non_positive_raises(self, field):
        with pytest.raises(ValidationError):
            CompositionCriteria(**{field: 0})

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            ScoringWeights(content=0.5)
        assert ScoringWeights(content=0.4, size=0.0).content == 0.4

    def test_focus_items_bounded(self):
        assert CompatibilityPolicy(max_focus_items=1).max_focus_items == 1
        with pytest.raises(ValidationError):
            CompatibilityPolicy(max_focus_items=4)

    def test_engine_settings_bounds(self):
        with pytest.raises(ValidationError):
            EngineSettings(max_workers=0)
        with pytest.raises(ValidationError):
            EngineSettings(cache_ttl_seconds=-1)

    def test_content_item_frozen_and_bounded(self):
        mat = ContentItem(id="m", unit_number=1, lesson_number=1,
                          content_type=ContentType.GRAMMAR, difficulty_level=3)
        with pytest.raises(ValidationError):
            mat.difficulty_level = 4
        with pytest.raises(ValidationError):
            ContentItem(id="m", unit_number=1, lesson_number=1,
                        content_type=ContentType.GRAMMAR, difficulty_level=11)

    def test_composition_focus_limited(self):
        items = [
            ContentItem(id=f"m{i}", unit_number=1, lesson_number=i,
                        content_type=ContentType.READING, difficulty_level=2)
            for i in range(1, 5)
        ]
        with pytest.raises(ValidationError):
            ClassComposition(id="c", student_ids=["a"], content_focus=items,
                             class_type=ClassType.INDIVIDUAL, optimal_class_size=1)

    def test_composition_needs_students(self):
        with pytest.raises(ValidationError):
            ClassComposition(id="c", student_ids=[], class_type=ClassType.GROUP,
                             optimal_class_size=1)


# ─── YAML save / load ─────────────────────────────────────────────────────────

class TestConfigManager:
    def _manager(self, tmp_path: Path) -> ConfigManager:
        mgr = ConfigManager()
        mgr.CONFIG_DIR = tmp_path
        mgr.DEFAULT_CONFIG = tmp_path / "composer_config.yaml"
        mgr.SCENARIOS_DIR = tmp_path / "scenarios"
        return mgr

    def test_save_and_load_roundtrip(self, tmp_path: Path):
        """Save, load and validate the config: full roundtrip."""
        config = ComposerConfig(
            academy_name="Test Academy",
            criteria=CompositionCriteria(min_students=3, max_students=6),
            engine=EngineSettings(time_limit_seconds=2.5),
        )
        mgr = self._manager(tmp_path)
        mgr.save(config)
        assert mgr.DEFAULT_CONFIG.exists()
        assert mgr.load() == config

    def test_yaml_has_comments(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save(default_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert text.startswith("# ====")
        assert "Composition criteria" in text

    def test_first_run_check(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        assert mgr.first_run_check() is True
        mgr.save(default_config())
        assert mgr.first_run_check() is False

    def test_load_missing_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            self._manager(tmp_path).load()

    def test_load_or_default(self, tmp_path: Path):
        assert self._manager(tmp_path).load_or_default() == ComposerConfig()

    def test_load_invalid_raises_value_error(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.DEFAULT_CONFIG.write_text(
            "criteria:\n  min_students: 5\n  max_students: 2\n", encoding="utf-8"
        )
        with pytest.raises(ValueError):
            mgr.load()

    def test_scenarios(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        config = ComposerConfig(criteria=CompositionCriteria(max_students=4))
        mgr.save_scenario(config, "small", "Small groups")

        scenarios = mgr.list_scenarios()
        assert [s["name"] for s in scenarios] == ["small"]
        assert scenarios[0]["description"] == "Small groups"
        assert mgr.load_scenario("small").criteria.max_students == 4

    def test_scenario_overwrite(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save_scenario(default_config(), "s")
        mgr.save_scenario(ComposerConfig(academy_name="New"), "s", overwrite=True)
        assert mgr.load_scenario("s").academy_name == "New"

    def test_unknown_scenario_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            self._manager(tmp_path).load_scenario("nope")


# ─── Dataset & result persistence ─────────────────────────────────────────────

class TestPersistence:
    def test_dataset_json_roundtrip(self, tmp_path: Path):
        dataset = FakeStudentGenerator(num_students=6, seed=2,
                                       course_type=CourseType.SPEAK_UP).generate()
        path = tmp_path / "students.json"
        dataset.save_json(path)
        loaded = StudentDataset.load_json(path)
        assert loaded.student_ids == dataset.student_ids
        assert loaded.bookings == dataset.bookings
        assert loaded.created_at is not None and loaded.modified_at is not None

    def test_generator_reproducible(self):
        first = FakeStudentGenerator(num_students=5, seed=9).generate()
        second = FakeStudentGenerator(num_students=5, seed=9).generate()
        assert first.model_dump() == second.model_dump()

    def test_result_json_roundtrip(self, tmp_path: Path):
        result = CompositionResult(
            compositions=[ClassComposition(id="c", student_ids=["a", "b"],
                                           class_type=ClassType.GROUP,
                                           optimal_class_size=2)],
            unplaced_students=["x"],
            optimizer_status=OptimizerStatus.ITERATION_LIMIT,
        )
        path = tmp_path / "out" / "result.json"
        result.save_json(path)
        loaded = CompositionResult.load_json(path)
        assert loaded == result
        assert loaded.get_composition_for("b").id == "c"
        assert loaded.get_composition_for("x") is None

    def test_missing_files_raise(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            StudentDataset.load_json(tmp_path / "none.json")
        with pytest.raises(FileNotFoundError):
            CompositionResult.load_json(tmp_path / "none.json")
