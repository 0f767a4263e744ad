"""Probe volumes: small revolved spheres standing in for a point."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import trimesh

from host_resolution.contracts import ResolverConfig
from host_resolution.errors import MissingCenterline, ProbeConstructionFailure

logger = logging.getLogger(__name__)

_AXIS_TOL = 1e-9


@dataclass(frozen=True)
class Frame:
    """Right-handed construction frame; ``basis_z`` is the revolution axis."""

    origin: np.ndarray
    basis_x: np.ndarray
    basis_y: np.ndarray
    basis_z: np.ndarray

    @classmethod
    def revolution_frame(cls, center: np.ndarray) -> "Frame":
        # X = world X, Y = -world Z, axis = world Y
        return cls(
            origin=np.asarray(center, dtype=np.float64),
            basis_x=np.array([1.0, 0.0, 0.0]),
            basis_y=np.array([0.0, 0.0, -1.0]),
            basis_z=np.array([0.0, 1.0, 0.0]),
        )

    def to_matrix(self) -> np.ndarray:
        matrix = np.eye(4)
        matrix[:3, 0] = self.basis_x
        matrix[:3, 1] = self.basis_y
        matrix[:3, 2] = self.basis_z
        matrix[:3, 3] = self.origin
        return matrix


def can_define_geometry(frame: Frame, max_coordinate: float) -> bool:
    """True when *frame* is finite, orthonormal, right-handed and in range."""
    vectors = (frame.origin, frame.basis_x, frame.basis_y, frame.basis_z)
    if any(v.shape != (3,) or not np.all(np.isfinite(v)) for v in vectors):
        return False
    if float(np.max(np.abs(frame.origin))) > max_coordinate:
        return False
    axes = (frame.basis_x, frame.basis_y, frame.basis_z)
    if any(abs(float(np.linalg.norm(a)) - 1.0) > _AXIS_TOL for a in axes):
        return False
    if abs(float(frame.basis_x @ frame.basis_y)) > _AXIS_TOL:
        return False
    if abs(float(frame.basis_y @ frame.basis_z)) > _AXIS_TOL:
        return False
    if abs(float(frame.basis_z @ frame.basis_x)) > _AXIS_TOL:
        return False
    handedness = np.cross(frame.basis_x, frame.basis_y) @ frame.basis_z
    return bool(handedness > 0.0)


def curve_midpoint(curve: Any) -> np.ndarray:
    """Midpoint of a curve's end points, ``(start + end) / 2``."""
    start = np.asarray(curve.start, dtype=np.float64)
    end = np.asarray(curve.end, dtype=np.float64)
    return (start + end) / 2.0


def representative_point(entity: Any) -> np.ndarray:
    """Midpoint of the entity's first centerline curve.

    Raises:
        MissingCenterline: the entity has no curves.
    """
    curves = entity.get_centerline_curves()
    if not curves:
        raise MissingCenterline(entity.element_id)
    return curve_midpoint(curves[0])


def build_probe(
    center: np.ndarray,
    config: Optional[ResolverConfig] = None,
) -> trimesh.Trimesh:
    """Revolve a half-circle profile a full turn about an axis through *center*.

    Raises:
        ProbeConstructionFailure: the frame is degenerate or the revolved
            body has no positive volume.
    """
    if config is None:
        config = ResolverConfig()

    frame = Frame.revolution_frame(center)
    if not can_define_geometry(frame, config.max_model_coordinate):
        raise ProbeConstructionFailure(
            f"Cannot define revolution frame at {np.asarray(center).tolist()}"
        )

    radius = float(config.probe_radius)
    theta = np.linspace(0.0, np.pi, int(config.probe_profile_segments) + 1)
    # (radial, axial) profile from the lower pole to the upper pole
    profile = np.column_stack((np.sin(theta), -np.cos(theta))) * radius

    probe = trimesh.creation.revolve(
        linestring=profile,
        sections=int(config.probe_sections),
        transform=frame.to_matrix(),
    )
    volume = float(probe.volume)
    if not np.isfinite(volume) or volume <= 0.0:
        raise ProbeConstructionFailure(
            f"Revolved probe at {frame.origin.tolist()} has volume {volume}"
        )
    return probe
