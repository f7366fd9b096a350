import logging

import pytest

from pile.foundation.errors import ConfigError, MergeError
from pile.framework.project import (
    CopyResultsConfig,
    ProjectConfig,
    TestConfig,
    load_project_config,
    merge_config,
)
from pile.framework.registry import RegistryConfig


def test_from_dict_parses_every_key():
    config, warnings = ProjectConfig.from_dict(
        {
            "name": "api",
            "context_dir": "..",
            "image_prefix": "acme/",
            "version_prefix": 1.2,
            "version_template": "{{.Commits}}",
            "depends_on": ["../lib", "../proto"],
            "build_args": {"PY": 3.12, "MODE": "prod"},
            "test": {"target": "test", "copy_results": {"src_path": "/app/build/.", "dst_path": "build"}},
            "registry": {"url": "registry.example.com/team", "push": "yes"},
        }
    )

    assert warnings == []
    assert config.name == "api"
    assert config.version_prefix == "1.2"
    assert config.depends_on == ("../lib", "../proto")
    assert dict(config.build_args) == {"PY": "3.12", "MODE": "prod"}
    assert config.test == TestConfig(
        target="test", copy_results=CopyResultsConfig(src_path="/app/build/.", dst_path="build")
    )
    assert config.registry == RegistryConfig(url="registry.example.com/team", push=True)


def test_from_dict_warns_on_unknown_keys():
    _, warnings = ProjectConfig.from_dict({"name": "api", "dockerfile": "x", "test": {"tagret": "t"}})
    assert warnings == ["Unknown config key: dockerfile", "Unknown config key: test.tagret"]


@pytest.mark.parametrize(
    "raw, match",
    [
        ({"depends_on": {"a": 1}}, "depends_on"),
        ({"build_args": ["A=1"]}, "build_args"),
        ({"registry": {"push": "maybe"}}, "registry.push"),
        ({"name": ""}, "name"),
        ({"image_prefix": ["x"]}, "image_prefix"),
    ],
)
def test_from_dict_rejects_bad_types(raw, match):
    with pytest.raises(ConfigError, match=match):
        ProjectConfig.from_dict(raw)


def test_merge_keeps_explicit_values_and_inherits_unset():
    project = ProjectConfig(name="api")
    defaults = ProjectConfig(name="root", image_prefix="acme/", version_prefix="v")

    merged = merge_config(project, defaults)

    assert merged.name == "api"
    assert merged.image_prefix == "acme/"
    assert merged.version_prefix == "v"


def test_merge_keeps_explicitly_empty_values():
    project = ProjectConfig(name="api", image_prefix="", depends_on=(), build_args={})
    defaults = ProjectConfig(image_prefix="acme/", depends_on=("../lib",))

    merged = merge_config(project, defaults)

    assert merged.image_prefix == ""
    assert merged.depends_on == ()
    assert dict(merged.build_args) == {}


def test_merge_build_args_is_keywise_union_project_wins():
    project = ProjectConfig(build_args={"MODE": "debug", "EXTRA": "1"})
    defaults = ProjectConfig(build_args={"MODE": "prod", "BASE": "alpine"})

    merged = merge_config(project, defaults)

    assert dict(merged.build_args) == {"MODE": "debug", "EXTRA": "1", "BASE": "alpine"}


def test_merge_depends_on_is_replaced():
    merged = merge_config(ProjectConfig(depends_on=("../a",)), ProjectConfig(depends_on=("../b",)))
    assert merged.depends_on == ("../a",)


def test_merge_nested_blocks_field_by_field():
    project = ProjectConfig(
        registry=RegistryConfig(push=False),
        test=TestConfig(copy_results=CopyResultsConfig(dst_path="out")),
    )
    defaults = ProjectConfig(
        registry=RegistryConfig(url="registry.example.com", push=True),
        test=TestConfig(target="test", copy_results=CopyResultsConfig(src_path="/app/out", dst_path="build")),
    )

    merged = merge_config(project, defaults)

    assert merged.registry == RegistryConfig(url="registry.example.com", push=False)
    assert merged.test == TestConfig(
        target="test", copy_results=CopyResultsConfig(src_path="/app/out", dst_path="out")
    )


def test_merge_with_no_defaults_is_identity():
    project = ProjectConfig(name="api")
    assert merge_config(project, None) is project


@pytest.mark.parametrize(
    "project, defaults",
    [
        (ProjectConfig(build_args=["A=1"]), ProjectConfig()),
        (ProjectConfig(), ProjectConfig(depends_on="../lib")),
        (ProjectConfig(image_prefix=3), ProjectConfig()),
        (ProjectConfig(registry={"url": "x"}), ProjectConfig(registry=RegistryConfig())),
    ],
)
def test_merge_type_mismatches_raise(project, defaults):
    with pytest.raises(MergeError):
        merge_config(project, defaults)


def test_merge_rejects_non_config_defaults():
    with pytest.raises(MergeError):
        merge_config(ProjectConfig(), {"image_prefix": "acme/"})


def test_load_project_config_missing_file_is_empty(tmp_path):
    assert load_project_config(tmp_path) == ProjectConfig()


def test_load_project_config_invalid_yaml_is_logged_and_empty(tmp_path, caplog):
    (tmp_path / "pile.yml").write_text("name: [api\n", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="pile.framework.project"):
        config = load_project_config(tmp_path)

    assert config == ProjectConfig()
    assert "Ignoring config file" in caplog.text
    assert "pile.yml" in caplog.text


def test_load_project_config_non_mapping_is_empty(tmp_path):
    (tmp_path / "pile.yml").write_text("- a\n- b\n", encoding="utf-8")
    assert load_project_config(tmp_path) == ProjectConfig()


def test_load_project_config_empty_file_is_empty(tmp_path):
    (tmp_path / "pile.yml").write_text("", encoding="utf-8")
    assert load_project_config(tmp_path) == ProjectConfig()


def test_registry_prefix():
    assert RegistryConfig().registry_prefix() == ""
    assert RegistryConfig(url="  ").registry_prefix() == ""
    assert RegistryConfig(url="registry.example.com/team").registry_prefix() == "registry.example.com/team/"
    assert RegistryConfig(url="registry.example.com/").registry_prefix() == "registry.example.com/"


def test_load_project_config_keeps_numeric_looking_values_verbatim(tmp_path):
    (tmp_path / "pile.yml").write_text(
        "name: gateway\n"
        "image_prefix: acme/\n"
        "version_prefix: 1.10\n"
        "build_args:\n  PY: 3.10\n  DEBUG: true\n  WORKERS: 08\n"
        "registry:\n  push: yes\n",
        encoding="utf-8",
    )

    config = load_project_config(tmp_path)

    assert config.name == "gateway"
    assert config.image_prefix == "acme/"
    assert config.version_prefix == "1.10"
    assert dict(config.build_args) == {"PY": "3.10", "DEBUG": "true", "WORKERS": "08"}
    assert config.registry == RegistryConfig(push=True)
