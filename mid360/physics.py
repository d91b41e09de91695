"""
Scene Geometry and Ray Intersection for the scan simulator

This module is the analytic stand-in for the host's collision engine. It
provides the intersection primitive consumed by the hit registration stage:

    Scene.raycast(origin, direction, max_distance) -> RayHit or None

Components:
    Material     surface reflectivity used by the hit registration law.
    RayHit       nearest hit: distance [m], world point [m], normal, material.
    Sphere, Plane, AxisAlignedBox, Triangle
                 closed-form ray intersection primitives.
    Scene        closest-hit query over a list of primitives.

A surface whose material carries no reflectivity raises IntersectionError
when the reflectivity of its hit is requested, which the registrar turns into
"no detection" for that ray.
"""

from dataclasses import dataclass

import numpy as np

from .errors import IntersectionError
from .math_utils import _as_vector3, _normalize, eps


@dataclass(frozen=True)
class Material:
    """
    Surface material seen by the sensor.

    :param reflectivity: Reflectivity in [0, 1], or None when the surface has no
                         reflectivity data. Finite values are clamped to [0, 1].
    :param name:         Descriptive label for debugging.
    """
    reflectivity: float = 0.5  # [0..1]
    name: str = "default"

    def __post_init__(self):
        if self.reflectivity is not None:
            # Frozen dataclass, so bypass the generated __setattr__.
            object.__setattr__(self, "reflectivity", float(np.clip(self.reflectivity, 0.0, 1.0)))


@dataclass
class RayHit:
    """
    Nearest intersection of a ray with the scene.

    :param distance:  Distance along the ray from its origin [m].
    :param point:     World-space hit point [m].
    :param normal:    Surface normal facing the incoming ray [unit].
    :param material:  Material of the hit surface.
    :param object_id: Identifier of the intersected SceneObject.
    """
    distance: float
    point: np.ndarray
    normal: np.ndarray
    material: Material
    object_id: str = ""

    @property
    def reflectivity(self):
        if self.material is None or self.material.reflectivity is None:
            raise IntersectionError(f"surface {self.object_id!r} has no reflectivity data.")
        return self.material.reflectivity


class SceneObject:
    """
    Base class for ray-traceable primitives.

    Subclasses override intersect(). ``object_id`` defaults to the class name.
    """
    def __init__(self, material=None, object_id=None):
        self.material = material if material is not None else Material()
        self.object_id = str(object_id) if object_id is not None else self.__class__.__name__

    def intersect(self, origin, direction, t_min=eps, t_max=float("inf")):
        """
        Intersect a ray with this primitive.

        :param origin:    Ray origin [m].
        :param direction: Unit ray direction.
        :param t_min:     Hits closer than this are ignored [m].
        :param t_max:     Hits farther than this are ignored [m].
        :return: RayHit within [t_min, t_max] or None.
        """
        raise NotImplementedError

    def _hit(self, t_hit, origin, direction, normal):
        return RayHit(
            distance=float(t_hit),
            point=origin + t_hit * direction,
            normal=normal,
            material=self.material,
            object_id=self.object_id,
        )


class Sphere(SceneObject):
    """Solid sphere given by centre [m] and radius [m]."""
    def __init__(self, center, radius, material=None, object_id=None):
        super().__init__(material=material, object_id=object_id)
        self.center = _as_vector3(center, "center")
        self.radius = float(radius)
        if self.radius <= eps:
            raise ValueError("Sphere radius must be > 0.")

    def intersect(self, origin, direction, t_min=eps, t_max=float("inf")):
        # Unit direction, so the quadratic reduces to t^2 + 2bt + c = 0.
        oc = origin - self.center
        b = float(np.dot(oc, direction))
        c = float(np.dot(oc, oc) - self.radius * self.radius)
        disc = b * b - c
        if disc < 0.0:
            return None

        sqrt_disc = np.sqrt(disc)
        for t_hit in (-b - sqrt_disc, -b + sqrt_disc):
            if t_min <= t_hit <= t_max:
                point = origin + t_hit * direction
                return self._hit(t_hit, origin, direction, _normalize(point - self.center))
        return None


class Plane(SceneObject):
    """Infinite plane through ``point`` with unit ``normal``."""
    def __init__(self, point, normal, material=None, object_id=None):
        super().__init__(material=material, object_id=object_id)
        self.point = _as_vector3(point, "point")
        self.normal = _normalize(_as_vector3(normal, "normal"))

    def intersect(self, origin, direction, t_min=eps, t_max=float("inf")):
        denom = float(np.dot(direction, self.normal))
        if abs(denom) < eps:
            return None  # parallel

        t_hit = float(np.dot(self.point - origin, self.normal) / denom)
        if not (t_min <= t_hit <= t_max):
            return None
        facing = self.normal if denom < 0.0 else -self.normal
        return self._hit(t_hit, origin, direction, facing)


class AxisAlignedBox(SceneObject):
    """Axis-aligned box between ``min_corner`` and ``max_corner`` [m], slab method."""
    def __init__(self, min_corner, max_corner, material=None, object_id=None):
        super().__init__(material=material, object_id=object_id)
        self.min_corner = _as_vector3(min_corner, "min_corner")
        self.max_corner = _as_vector3(max_corner, "max_corner")
        if np.any(self.max_corner <= self.min_corner):
            raise ValueError("max_corner must be strictly greater than min_corner on all axes.")

    def intersect(self, origin, direction, t_min=eps, t_max=float("inf")):
        with np.errstate(divide="ignore", invalid="ignore"):
            inv_dir = 1.0 / direction
            t0 = (self.min_corner - origin) * inv_dir
            t1 = (self.max_corner - origin) * inv_dir

        t_small = np.minimum(t0, t1)
        t_big = np.maximum(t0, t1)
        t_enter = float(np.nanmax(t_small))
        t_exit = float(np.nanmin(t_big))
        if t_exit < t_enter or t_exit < t_min or t_enter > t_max:
            return None

        t_hit = t_enter if t_enter >= t_min else t_exit
        if not (t_min <= t_hit <= t_max):
            return None

        # Face normal from the slab that bounds the hit distance.
        if t_hit == t_enter:
            axis = int(np.nanargmax(t_small))
            sign = -np.sign(direction[axis])
        else:
            axis = int(np.nanargmin(t_big))
            sign = np.sign(direction[axis])
        normal = np.zeros(3, dtype=float)
        normal[axis] = sign if sign != 0.0 else -1.0
        return self._hit(t_hit, origin, direction, normal)


class Triangle(SceneObject):
    """Triangle with vertices v0, v1, v2 [m], Moller-Trumbore intersection."""
    def __init__(self, v0, v1, v2, material=None, object_id=None):
        super().__init__(material=material, object_id=object_id)
        self.v0 = _as_vector3(v0, "v0")
        self.v1 = _as_vector3(v1, "v1")
        self.v2 = _as_vector3(v2, "v2")
        self.edge1 = self.v1 - self.v0
        self.edge2 = self.v2 - self.v0
        normal = np.cross(self.edge1, self.edge2)
        if np.linalg.norm(normal) <= eps:
            raise ValueError("Triangle vertices must be non-collinear.")
        self.face_normal = _normalize(normal)

    def intersect(self, origin, direction, t_min=eps, t_max=float("inf")):
        pvec = np.cross(direction, self.edge2)
        det = float(np.dot(self.edge1, pvec))
        if abs(det) < eps:
            return None  # parallel to the triangle plane

        inv_det = 1.0 / det
        tvec = origin - self.v0
        u = float(np.dot(tvec, pvec) * inv_det)
        if u < 0.0 or u > 1.0:
            return None

        qvec = np.cross(tvec, self.edge1)
        v = float(np.dot(direction, qvec) * inv_det)
        if v < 0.0 or (u + v) > 1.0:
            return None

        t_hit = float(np.dot(self.edge2, qvec) * inv_det)
        if not (t_min <= t_hit <= t_max):
            return None
        facing = self.face_normal if np.dot(direction, self.face_normal) < 0.0 else -self.face_normal
        return self._hit(t_hit, origin, direction, facing)


class Scene:
    """
    Closest-hit query over a list of SceneObject instances.

    Not safe for concurrent use while objects are being added; raycast() itself
    only reads the primitives.
    """
    def __init__(self, objects=None):
        self.objects = []
        for obj in objects or ():
            self.add(obj)

    def add(self, obj):
        """Add a SceneObject. Raises TypeError for anything else."""
        if not isinstance(obj, SceneObject):
            raise TypeError("Scene accepts SceneObject instances.")
        self.objects.append(obj)

    def raycast(self, origin, direction, max_distance=float("inf"), min_distance=eps):
        """
        Nearest intersection along a ray.

        The search distance shrinks to the closest hit found so far, so farther
        primitives are rejected by their own t_max test.

        :param origin:       Ray origin [m].
        :param direction:    Ray direction, normalized here.
        :param max_distance: Search bound [m].
        :param min_distance: Hits closer than this are ignored [m].
        :return: Closest RayHit, or None on a miss.
        """
        origin = _as_vector3(origin, "origin")
        direction = _normalize(_as_vector3(direction, "direction"))

        best_hit = None
        best_dist = float(max_distance)
        for obj in self.objects:
            hit = obj.intersect(origin, direction, t_min=min_distance, t_max=best_dist)
            if hit is not None and hit.distance < best_dist:
                best_dist = hit.distance
                best_hit = hit
        return best_hit
