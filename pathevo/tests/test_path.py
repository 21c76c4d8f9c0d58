import numpy as np
import pytest

from pathevo.obstacles import ObstacleField
from pathevo.path import (
    PathGenome,
    decode,
    sample_parameters,
    to_domain,
    to_points,
    trace,
)


@pytest.fixture
def control_points():
    return np.array([[0.1, 0.2], [0.9, -0.3], [1.4, 0.7], [0.6, 0.95]])


@pytest.mark.parametrize("step", [0.005, 0.01, 0.03, 0.3, 0.7, 1.0])
def test_decode_keeps_endpoints(control_points, step):
    """Primeira e última amostras coincidem com os extremos da curva para qualquer passo."""
    curve = decode(control_points, step)

    assert np.allclose(curve[0], control_points[0])
    assert np.allclose(curve[-1], control_points[-1])
    assert len(curve) >= 2


def test_sample_parameters_include_one():
    ts = sample_parameters(0.3)
    assert np.allclose(ts, [0.0, 0.3, 0.6, 0.9, 1.0])

    ts = sample_parameters(0.005)
    assert len(ts) == 201
    assert ts[-1] == 1.0


def test_sample_parameters_rejects_bad_step():
    with pytest.raises(ValueError):
        sample_parameters(0.0)


def test_straight_line_midpoint():
    """Com dois pontos de controle a curva é um segmento de reta."""
    points = np.array([[0.0, 0.0], [1.0, 1.0]])
    curve = decode(points, 0.25)
    assert np.allclose(curve[2], [0.5, 0.5])
    assert np.allclose(curve[:, 0], [0.0, 0.25, 0.5, 0.75, 1.0])


def test_decode_matches_de_casteljau(control_points):
    t = 0.75
    pts = control_points.copy()
    while len(pts) > 1:
        pts = (1 - t) * pts[:-1] + t * pts[1:]
    assert np.allclose(decode(control_points, 0.25)[3], pts[0])


def test_genome_layout_with_prefix_and_suffix():
    genome = PathGenome(free=np.array([0.3, 0.4, 0.5, 0.6]), prefix=(0.0, 0.1), suffix=(1.0, 0.9))
    vector = genome.to_vector()

    assert np.allclose(vector, [0.0, 0.1, 0.3, 0.4, 0.5, 0.6, 1.0, 0.9])
    assert genome.control_points().shape == (4, 2)

    restored = PathGenome.from_vector(vector, has_prefix=True, has_suffix=True)
    assert restored.prefix == (0.0, 0.1)
    assert restored.suffix == (1.0, 0.9)
    assert np.allclose(restored.free, genome.free)


def test_genome_without_suffix():
    genome = PathGenome.from_vector(np.array([0.2, 0.2, 0.5, 0.5]), has_prefix=True, has_suffix=False)
    assert genome.suffix is None
    assert np.allclose(genome.free, [0.5, 0.5])


def test_to_points_rejects_odd_vectors():
    with pytest.raises(ValueError):
        to_points(np.array([0.1, 0.2, 0.3]))


def test_to_domain_scales_coordinates():
    assert np.allclose(to_domain([[0.5, 0.25]], (200, 80)), [[100.0, 20.0]])


def test_trace_stops_at_first_collision(wall_image):
    """Com um campo de obstáculos a curva desenhada termina na parede."""
    field = ObstacleField(wall_image, 10)
    points = np.array([[0.1, 0.5], [0.9, 0.5]])

    free = trace(points, 0.01, field.size)
    stopped = trace(points, 0.01, field.size, field, footprint=(2.0, 2.0))

    assert len(free) == 101
    assert len(stopped) < len(free)
    assert 40.0 <= stopped[-1][0] <= 56.0
