from __future__ import annotations

from pathlib import Path

from avocado_devtools.domain.events import EventEmitter
from avocado_devtools.domain.projects import AvocadoProject, ProjectRegistry


def _folder(root: Path, name: str, file_name: str | None, content: str = "") -> str:
    folder = root / name
    folder.mkdir(parents=True)
    if file_name is not None:
        (folder / file_name).write_text(content, encoding="utf-8")
    return str(folder)


def test_registry_discovers_yaml_and_yml(tmp_path: Path) -> None:
    a = _folder(tmp_path, "a", "avocado.yaml", "sdk:\n  image: sdk:latest\n")
    b = _folder(tmp_path, "b", "avocado.yml", "extensions:\n  app: {}\n  config: {}\n")
    c = _folder(tmp_path, "c", None)
    registry = ProjectRegistry(folders=[a, b, c])

    projects = registry.refresh()

    assert [p.name for p in projects] == ["a", "b"]
    assert registry.get_project(a).config["sdk"]["image"] == "sdk:latest"
    assert registry.get_project(b).config_path.endswith("avocado.yml")
    assert registry.find_by_name("b").section_names("extensions") == ["app", "config"]
    assert registry.get_project(c) is None
    assert registry.project_count() == 2


def test_registry_prefers_yaml_over_yml(tmp_path: Path) -> None:
    folder = _folder(tmp_path, "p", "avocado.yaml", "target: a\n")
    (Path(folder) / "avocado.yml").write_text("target: b\n", encoding="utf-8")

    registry = ProjectRegistry(folders=[folder])
    registry.refresh()

    assert registry.get_project(folder).config == {"target": "a"}


def test_registry_skips_invalid_yaml(tmp_path: Path) -> None:
    bad = _folder(tmp_path, "bad", "avocado.yaml", "sdk: [unclosed\n")
    registry = ProjectRegistry(folders=[bad])

    assert registry.refresh() == []
    assert not registry.has_projects()


def test_registry_notifies_on_changes(tmp_path: Path) -> None:
    first = _folder(tmp_path, "first", "avocado.yaml", "{}\n")
    second = _folder(tmp_path, "second", "avocado.yaml", "{}\n")
    registry = ProjectRegistry(folders=[first])
    seen: list[list[str]] = []
    registry.on_projects_changed.subscribe(lambda projects: seen.append([p.name for p in projects]))

    registry.refresh()
    registry.add_folder(second)
    registry.remove_folder(first)

    assert seen == [["first"], ["first", "second"], ["second"]]


def test_event_emitter_survives_failing_handler() -> None:
    emitter: EventEmitter[int] = EventEmitter()
    received: list[int] = []

    def broken(_value: int) -> None:
        raise RuntimeError("boom")

    emitter.subscribe(broken)
    subscription = emitter.subscribe(received.append)
    emitter.fire(1)
    subscription.dispose()
    emitter.fire(2)

    assert received == [1]


def test_project_equality_ignores_config() -> None:
    left = AvocadoProject(name="p", folder_path="/p", config_path="/p/avocado.yaml", config={"a": 1})
    right = AvocadoProject(name="p", folder_path="/p", config_path="/p/avocado.yaml", config={})
    assert left == right
