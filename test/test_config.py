import json

import pytest

from category_map import DEFAULT_CATEGORY_MAP, MaterialType
from config import (
    DEFAULT_INPUT_SIZE,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_MODEL_PATH,
    ClassifierConfig,
    load_category_map,
    load_config,
)
from errors import ConfigurationError


class TestClassifierConfig:

    def test_defaults(self):
        config = ClassifierConfig().validate()
        assert config.category_map is DEFAULT_CATEGORY_MAP
        assert config.acceptance_threshold == 0.01
        assert config.apply_weights is False
        assert config.model_url is None
        assert config.model_path == DEFAULT_MODEL_PATH
        assert config.input_size == DEFAULT_INPUT_SIZE
        assert config.max_upload_bytes == DEFAULT_MAX_UPLOAD_BYTES == 5 * 1024 * 1024

    @pytest.mark.parametrize("kwargs, field", [
        ({"acceptance_threshold": -0.1}, "acceptance_threshold"),
        ({"acceptance_threshold": 1.0}, "acceptance_threshold"),
        ({"input_size": 0}, "input_size"),
        ({"max_upload_bytes": 0}, "max_upload_bytes"),
        ({"model_url": "ftp://example.com/model.h5"}, "model_url"),
    ])
    def test_invalid_values(self, kwargs, field):
        with pytest.raises(ConfigurationError) as exc_info:
            ClassifierConfig(**kwargs).validate()
        assert exc_info.value.config_field == field
        assert f"[{field}]" in str(exc_info.value)

    def test_config_is_hashable(self):
        assert hash(ClassifierConfig()) == hash(ClassifierConfig())


class TestLoadConfig:

    def test_empty_environment_gives_defaults(self):
        assert load_config({}) == ClassifierConfig()

    def test_overrides(self):
        config = load_config({
            "WASTEWISE_ACCEPTANCE_THRESHOLD": "0.2",
            "WASTEWISE_APPLY_WEIGHTS": "yes",
            "WASTEWISE_MODEL_URL": "https://example.com/model.h5",
            "WASTEWISE_MODEL_PATH": "models/custom.h5",
            "WASTEWISE_INPUT_SIZE": "192",
            "WASTEWISE_MAX_UPLOAD_MB": "2",
        })
        assert config.acceptance_threshold == 0.2
        assert config.apply_weights is True
        assert config.model_url == "https://example.com/model.h5"
        assert config.model_path == "models/custom.h5"
        assert config.input_size == 192
        assert config.max_upload_bytes == 2 * 1024 * 1024

    def test_blank_values_are_ignored(self):
        assert load_config({"WASTEWISE_ACCEPTANCE_THRESHOLD": "  "}) == ClassifierConfig()

    @pytest.mark.parametrize("name, value, field", [
        ("WASTEWISE_ACCEPTANCE_THRESHOLD", "one percent", "acceptance_threshold"),
        ("WASTEWISE_APPLY_WEIGHTS", "maybe", "apply_weights"),
        ("WASTEWISE_INPUT_SIZE", "224px", "input_size"),
    ])
    def test_unparseable_values(self, name, value, field):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config({name: value})
        assert exc_info.value.config_field == field

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf", "lots"])
    def test_invalid_upload_limit(self, value):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config({"WASTEWISE_MAX_UPLOAD_MB": value})
        assert exc_info.value.config_field == "max_upload_mb"

    def test_negative_upload_limit(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config({"WASTEWISE_MAX_UPLOAD_MB": "-1"})
        assert exc_info.value.config_field == "max_upload_bytes"

    def test_out_of_range_threshold(self):
        with pytest.raises(ConfigurationError):
            load_config({"WASTEWISE_ACCEPTANCE_THRESHOLD": "2"})

    def test_category_map_from_json(self, tmp_path):
        path = tmp_path / "categories.json"
        path.write_text(json.dumps([
            {"index": 3, "type": "Glass", "name": "jar"},
            {"index": 7, "type": "Metal", "name": "can", "weight": 0.8},
        ]), encoding="utf-8")
        config = load_config({"WASTEWISE_CATEGORY_MAP": str(path)})
        assert len(config.category_map) == 2
        assert config.category_map.material_types == (MaterialType.GLASS, MaterialType.METAL)


class TestLoadCategoryMap:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_category_map(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_category_map(str(path))

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "object.json"
        path.write_text('{"index": 1}', encoding="utf-8")
        with pytest.raises(ConfigurationError, match="JSON list"):
            load_category_map(str(path))

    def test_empty_list(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_category_map(str(path))
