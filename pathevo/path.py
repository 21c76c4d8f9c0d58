"""path.py

Codificação do caminho como curva de Bézier. O indivíduo é um vetor de
genes reais, lidos em pares (x, y) normalizados em [0, 1]; o ponto de
partida (prefixo) e, opcionalmente, o destino (sufixo) são pontos fixos
que nunca sofrem mutação.
"""
from dataclasses import dataclass
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from pathevo.config import FOOTPRINT
from pathevo.obstacles import ObstacleField, footprint_bounds


@dataclass
class PathGenome:
	free: np.ndarray
	prefix: Optional[Tuple[float, float]] = None
	suffix: Optional[Tuple[float, float]] = None

	@staticmethod
	def from_vector(v: np.ndarray, has_prefix: bool = True, has_suffix: bool = False) -> "PathGenome":
		v = np.asarray(v, dtype=float)
		start = 2 if has_prefix else 0
		stop = v.size - 2 if has_suffix else v.size
		return PathGenome(
			free=v[start:stop].copy(),
			prefix=(float(v[0]), float(v[1])) if has_prefix else None,
			suffix=(float(v[-2]), float(v[-1])) if has_suffix else None,
		)

	def to_vector(self) -> np.ndarray:
		parts = []
		if self.prefix is not None:
			parts.append(np.asarray(self.prefix, dtype=float))
		parts.append(np.asarray(self.free, dtype=float))
		if self.suffix is not None:
			parts.append(np.asarray(self.suffix, dtype=float))
		return np.concatenate(parts)

	def control_points(self) -> np.ndarray:
		return to_points(self.to_vector())


def to_points(v: np.ndarray) -> np.ndarray:
	"""Vetor plano [x0, y0, x1, y1, ...] -> array (n, 2)."""
	v = np.asarray(v, dtype=float)
	if v.size < 2 or v.size % 2:
		raise ValueError(f"vetor de genes precisa de tamanho par >= 2 (recebido {v.size})")
	return v.reshape(-1, 2)


def sample_parameters(step: float) -> np.ndarray:
	"""t = 0, step, 2*step, ... com uma última amostra em t = 1.

	O incremento que ultrapassa 1 é mantido, mas limitado a 1, de modo que a
	última amostra sempre coincide com o fim da curva.
	"""
	if not 0.0 < step <= 1.0:
		raise ValueError(f"passo inválido: {step}")
	n = int(math.ceil(1.0 / step - 1e-9))
	return np.minimum(np.arange(n + 1, dtype=float) * step, 1.0)


def _bernstein(ts: np.ndarray, degree: int) -> np.ndarray:
	k = np.arange(degree + 1)
	coeffs = np.array([math.comb(degree, int(i)) for i in k], dtype=float)
	t = ts[:, None]
	return coeffs * t ** k * (1.0 - t) ** (degree - k)


def decode(points: np.ndarray, step: float) -> np.ndarray:
	"""Amostra a curva de Bézier definida por `points` (n, 2).

	Retorna um array (m, 2) de pontos normalizados; m >= 2, o primeiro é o
	primeiro ponto de controle e o último é o último ponto de controle.
	"""
	points = np.asarray(points, dtype=float)
	if points.ndim != 2 or points.shape[1] != 2 or len(points) == 0:
		raise ValueError(f"pontos de controle devem ter forma (n, 2), recebido {points.shape}")
	ts = sample_parameters(step)
	curve = _bernstein(ts, len(points) - 1) @ points
	# extremos exatos, sem erro de arredondamento
	curve[0] = points[0]
	curve[-1] = points[-1]
	return curve


def to_domain(points: np.ndarray, size: Sequence[float]) -> np.ndarray:
	"""Coordenadas normalizadas -> coordenadas do cenário (pixels)."""
	return np.asarray(points, dtype=float) * np.asarray(size, dtype=float)


def headings(domain_points: np.ndarray) -> np.ndarray:
	"""Ângulo do segmento que chega em cada amostra (a partir da segunda)."""
	delta = np.diff(domain_points, axis=0)
	return np.arctan2(delta[:, 1], delta[:, 0])


def trace(points: np.ndarray,
		  step: float,
		  size: Sequence[float],
		  field: Optional[ObstacleField] = None,
		  footprint: Tuple[float, float] = FOOTPRINT) -> np.ndarray:
	"""Curva em coordenadas do cenário para desenho.

	Com `field` informado, a curva termina na primeira amostra em que o
	veículo colide com o cenário.
	"""
	curve = to_domain(decode(points, step), size)
	if field is None:
		return curve
	angles = headings(curve)
	for i in range(1, len(curve)):
		if field.collides(footprint_bounds(curve[i], angles[i - 1], footprint)):
			return curve[:i + 1]
	return curve
