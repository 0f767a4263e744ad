"""JSON scene files for running host resolution outside the CAD host.

Example::

    {
      "config": {"probe_radius": 0.5, "propagation_mode": "attribute_copy"},
      "hosts": [
        {"id": 101, "box": {"extents": [10, 0.5, 3], "center": [0, 0, 1.5]},
         "attributes": {"Base Constraint": {"storage": "element_id", "value": 7}}},
        {"id": 102, "mesh": "walls/curved.stl"}
      ],
      "entities": [
        {"id": 9001, "curves": [[[0, 0, 1], [2, 0, 1]]],
         "attributes": {"Schedule Level": null}, "grouped": false}
      ]
    }

Mesh paths are relative to the scene file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import trimesh

from host_resolution.contracts import AttributeValue, ResolverConfig, StorageKind
from host_resolution.memory_model import (
    LineCurve,
    MemoryHost,
    MemoryLinearEntity,
    box_host,
)


@dataclass
class Scene:
    config: ResolverConfig
    hosts: List[MemoryHost]
    entities: List[MemoryLinearEntity]


def load_scene(path: Path) -> Scene:
    path = Path(path)
    payload = json.loads(path.read_text(encoding="utf-8"))
    return scene_from_dict(payload, base_dir=path.parent)


def scene_from_dict(payload: Dict[str, Any], base_dir: Path = Path(".")) -> Scene:
    config = ResolverConfig.from_dict(payload.get("config", {}) or {})
    hosts = [_host_from_dict(h, base_dir) for h in payload.get("hosts", [])]
    entities = [_entity_from_dict(e) for e in payload.get("entities", [])]
    return Scene(config=config, hosts=hosts, entities=entities)


def _host_from_dict(payload: Dict[str, Any], base_dir: Path) -> MemoryHost:
    if "id" not in payload:
        raise ValueError(f"Host entry has no id: {payload}")
    attributes = {
        name: AttributeValue(
            storage=StorageKind(entry.get("storage", StorageKind.NONE.value)),
            value=entry.get("value"),
        )
        for name, entry in (payload.get("attributes") or {}).items()
    }
    if "box" in payload:
        box = payload["box"]
        return box_host(
            payload["id"],
            extents=box["extents"],
            center=box.get("center", (0.0, 0.0, 0.0)),
            attributes=attributes,
        )
    if "mesh" in payload:
        mesh = _load_mesh(base_dir / payload["mesh"])
        return MemoryHost(element_id=payload["id"], geometry=[mesh], attributes=attributes)
    return MemoryHost(element_id=payload["id"], geometry=None, attributes=attributes)


def _entity_from_dict(payload: Dict[str, Any]) -> MemoryLinearEntity:
    if "id" not in payload:
        raise ValueError(f"Entity entry has no id: {payload}")
    curves = [LineCurve.from_points(start, end) for start, end in payload.get("curves", [])]
    return MemoryLinearEntity(
        element_id=payload["id"],
        curves=curves,
        attributes=dict(payload.get("attributes") or {}),
        grouped=bool(payload.get("grouped", False)),
        host_id=payload.get("host_id"),
    )


def _load_mesh(mesh_path: Path) -> trimesh.Trimesh:
    loaded = trimesh.load(mesh_path, force="mesh")
    if isinstance(loaded, trimesh.Scene):
        meshes = [g for g in loaded.geometry.values() if isinstance(g, trimesh.Trimesh)]
        if not meshes:
            raise ValueError(f"Scene has no mesh geometry: {mesh_path}")
        return trimesh.util.concatenate(meshes)
    if not isinstance(loaded, trimesh.Trimesh):
        raise ValueError(f"Unsupported mesh type from {mesh_path}")
    return loaded
