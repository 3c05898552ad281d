from __future__ import annotations

import json

import pytest
from conftest import FakeProvider

from ddftools.build.assembly import DDFAssembler, GenericIndex
from ddftools.build.orchestrator import BuildOrchestrator
from ddftools.sources.registry import SourceRegistry
from ddftools.validation.engine import JsonSchemaEngine

LAMP = {
    "schema": "devcap1.schema.json",
    "uuid": "u-1",
    "product": "Lamp",
    "manufacturername": "IKEA",
    "subdevices": [
        {
            "type": "$TYPE_COLOR_LIGHT",
            "items": [
                {"name": "state/on", "read": {"script": "lamp.js"}},
                {"name": "state/unknown"},
            ],
        }
    ],
}

DEVCAP_SCHEMA = {
    "type": "object",
    "required": ["product"],
    "properties": {"product": {"type": "string"}},
}


@pytest.fixture
def tree(tmp_path, write):
    files = {
        "generic/constants.json": {"schema": "constants2.schema.json"},
        "generic/subdevices/color_light.json": {
            "schema": "subdevice1.schema.json",
            "type": "$TYPE_COLOR_LIGHT",
        },
        "generic/items/state_on.json": {"schema": "resourceitem1.schema.json", "id": "state/on"},
        "generic/items/state_x.json": {"schema": "resourceitem1.schema.json", "id": "state/x"},
        "ikea/lamp.json": LAMP,
    }
    paths = {name: write(f"devices/{name}", json.dumps(data, indent=2)) for name, data in files.items()}
    paths["ikea/lamp.js"] = write("devices/ikea/lamp.js", "R.item.val = true;")
    return tmp_path / "devices", paths


def _registry(devices, paths, statuses=None):
    provider = FakeProvider({paths[n]: s for n, s in (statuses or {}).items()})
    registry = SourceRegistry(str(devices / "generic"), provider)
    registry.register(paths.values())
    return registry


def test_generic_index_groups_by_identity(tree) -> None:
    devices, paths = tree
    registry = _registry(devices, paths)

    index = GenericIndex.build(registry)

    assert index.constants == [paths["generic/constants.json"]]
    assert index.items == {
        "state/on": paths["generic/items/state_on.json"],
        "state/x": paths["generic/items/state_x.json"],
    }
    assert index.subdevices == {"$TYPE_COLOR_LIGHT": paths["generic/subdevices/color_light.json"]}
    assert registry.unused()["generic"] == sorted(
        p for n, p in paths.items() if n.startswith("generic/")
    )


def test_assembler_pulls_in_every_referenced_file(tree) -> None:
    devices, paths = tree
    registry = _registry(devices, paths, {"ikea/lamp.js": "modified"})
    assembler = DDFAssembler(GenericIndex.build(registry), str(devices), str(devices / "generic"))

    result = BuildOrchestrator(registry, assembler, max_workers=1).build_one(paths["ikea/lamp.json"])

    assert result.status == "modified"
    assert result.errors == []
    assert [(f.path, f.kind) for f in result.bundle.files] == [
        ("ikea/lamp.json", "ddf"),
        ("constants.json", "generic"),
        ("subdevices/color_light.json", "generic"),
        ("items/state_on.json", "generic"),
        ("ikea/lamp.js", "script"),
    ]
    assert result.bundle.desc == {"uuid": "u-1", "product": "Lamp", "manufacturername": "IKEA"}
    assert registry.unused() == {
        "ddf": [],
        "generic": [paths["generic/items/state_x.json"]],
        "misc": [],
    }


def test_schema_engine_failures_point_into_the_document(tree, tmp_path) -> None:
    devices, paths = tree
    broken = dict(LAMP, product=42)
    with open(paths["ikea/lamp.json"], "w", encoding="utf-8") as f:
        json.dump(broken, f, indent=2)
    registry = _registry(devices, paths)
    engine = JsonSchemaEngine({"devcap1.schema.json": DEVCAP_SCHEMA})
    assembler = DDFAssembler(GenericIndex.build(registry), str(devices), str(devices / "generic"))

    result = BuildOrchestrator(registry, assembler, engine=engine, max_workers=1).build_one(
        paths["ikea/lamp.json"]
    )

    assert result.validation_outcome == "error"
    (error,) = result.errors
    assert error.json_path == ("product",)
    assert error.line == 4
    assert "is not of type 'string'" in error.message


def test_strict_engine_rejects_unknown_schema() -> None:
    engine = JsonSchemaEngine({}, strict=True)

    (failure,) = engine.validate([("a.json", {"schema": "nope.json"})])

    assert failure.json_path == ("schema",)
    assert JsonSchemaEngine({}).validate([("a.json", {"schema": "nope.json"})]) == []


def test_engine_loads_schema_directory(tmp_path) -> None:
    (tmp_path / "devcap1.schema.json").write_text(json.dumps(DEVCAP_SCHEMA))

    engine = JsonSchemaEngine.from_directory(str(tmp_path))

    assert list(engine.schemas) == ["devcap1.schema.json"]
    with pytest.raises(ValueError):
        JsonSchemaEngine.from_directory(str(tmp_path / "empty"))
