"""
Scene geometry tests.

Validates the closed-form intersection primitives, the closest-hit query and
the reflectivity contract of materials and hits.
"""

import numpy as np
import pytest

from mid360.errors import IntersectionError
from mid360.physics import AxisAlignedBox, Material, Plane, RayHit, Scene, Sphere, Triangle

ORIGIN = np.zeros(3)
FORWARD = np.array([1.0, 0.0, 0.0])


def test_sphere_hit_from_outside_and_inside():
    sphere = Sphere([10.0, 0.0, 0.0], 2.0)
    hit = sphere.intersect(ORIGIN, FORWARD)
    assert hit.distance == pytest.approx(8.0)
    np.testing.assert_allclose(hit.point, [8.0, 0.0, 0.0])
    np.testing.assert_allclose(hit.normal, [-1.0, 0.0, 0.0])

    inside = Sphere(ORIGIN, 5.0).intersect(ORIGIN, FORWARD)
    assert inside.distance == pytest.approx(5.0)

    assert sphere.intersect(ORIGIN, np.array([0.0, 1.0, 0.0])) is None
    assert sphere.intersect(ORIGIN, FORWARD, t_max=7.0) is None


def test_plane_hit_and_parallel_ray():
    plane = Plane([0.0, 0.0, -2.0], [0.0, 0.0, 1.0])
    down = np.array([0.0, 0.0, -1.0])

    hit = plane.intersect(ORIGIN, down)
    assert hit.distance == pytest.approx(2.0)
    np.testing.assert_allclose(hit.normal, [0.0, 0.0, 1.0])
    assert plane.intersect(ORIGIN, FORWARD) is None
    assert plane.intersect(ORIGIN, -down) is None


@pytest.mark.parametrize(
    "direction, distance, normal",
    [
        ([1.0, 0.0, 0.0], 4.0, [-1.0, 0.0, 0.0]),
        ([0.0, 1.0, 0.0], 4.0, [0.0, -1.0, 0.0]),
        ([0.0, 0.0, -1.0], 4.0, [0.0, 0.0, 1.0]),
    ],
)
def test_box_face_normals(direction, distance, normal):
    # Box around a point 5 m away on each tested axis.
    box = AxisAlignedBox([4.0, 4.0, -6.0], [6.0, 6.0, 6.0])
    if direction[0] == 1.0:
        origin = np.array([0.0, 5.0, 0.0])
    elif direction[1] == 1.0:
        origin = np.array([5.0, 0.0, 0.0])
    else:
        box = AxisAlignedBox([-1.0, -1.0, -6.0], [1.0, 1.0, -4.0])
        origin = ORIGIN

    hit = box.intersect(origin, np.array(direction))
    assert hit.distance == pytest.approx(distance)
    np.testing.assert_allclose(hit.normal, normal)


def test_box_hit_from_inside_uses_exit_face():
    box = AxisAlignedBox([-1.0, -1.0, -1.0], [3.0, 1.0, 1.0])
    hit = box.intersect(ORIGIN, FORWARD)
    assert hit.distance == pytest.approx(3.0)
    np.testing.assert_allclose(hit.normal, [1.0, 0.0, 0.0])


def test_triangle_hit_and_miss():
    triangle = Triangle([5.0, -1.0, -1.0], [5.0, 1.0, -1.0], [5.0, 0.0, 1.0])
    hit = triangle.intersect(ORIGIN, FORWARD)
    assert hit.distance == pytest.approx(5.0)
    np.testing.assert_allclose(hit.normal, [-1.0, 0.0, 0.0])

    assert triangle.intersect(np.array([0.0, 3.0, 0.0]), FORWARD) is None


@pytest.mark.test_meta(
    description="Raycast through a scene holding a far wall, a near sphere and a box behind the sensor.",
    goal="Confirm the scene returns the closest hit within the search bounds.",
    passing_criteria="The sphere is hit first; bounding the search before it reaches the wall returns None.",
)
def test_scene_returns_closest_hit():
    scene = Scene(
        [
            Plane([20.0, 0.0, 0.0], [-1.0, 0.0, 0.0], object_id="wall"),
            Sphere([8.0, 0.0, 0.0], 1.0, object_id="ball"),
            AxisAlignedBox([-5.0, -1.0, -1.0], [-3.0, 1.0, 1.0], object_id="crate"),
        ]
    )

    hit = scene.raycast(ORIGIN, FORWARD)
    assert hit.object_id == "ball"
    assert hit.distance == pytest.approx(7.0)

    assert scene.raycast(np.array([0.0, 5.0, 0.0]), FORWARD).object_id == "wall"
    assert scene.raycast(np.array([0.0, 5.0, 0.0]), FORWARD, max_distance=15.0) is None
    assert scene.raycast(ORIGIN, -FORWARD).object_id == "crate"
    # Unnormalized directions are accepted.
    assert scene.raycast(ORIGIN, 3.0 * FORWARD).distance == pytest.approx(7.0)


def test_scene_only_accepts_scene_objects():
    with pytest.raises(TypeError):
        Scene(["not a primitive"])


def test_material_clamps_reflectivity():
    assert Material(reflectivity=1.7).reflectivity == 1.0
    assert Material(reflectivity=-0.2).reflectivity == 0.0
    assert Material(reflectivity=0.4).reflectivity == 0.4
    assert Material(reflectivity=None).reflectivity is None


def test_hit_without_reflectivity_raises():
    hit = RayHit(1.0, np.zeros(3), FORWARD, Material(reflectivity=None), object_id="glass")
    with pytest.raises(IntersectionError):
        _ = hit.reflectivity
    assert RayHit(1.0, np.zeros(3), FORWARD, Material(reflectivity=0.3)).reflectivity == 0.3


@pytest.mark.parametrize(
    "factory",
    [
        lambda: Sphere(ORIGIN, 0.0),
        lambda: AxisAlignedBox([0.0, 0.0, 0.0], [1.0, 0.0, 1.0]),
        lambda: Triangle([0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]),
    ],
)
def test_degenerate_primitives_are_rejected(factory):
    with pytest.raises(ValueError):
        factory()
