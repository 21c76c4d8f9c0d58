"""fitness.py

Avaliação de um caminho candidato. A curva é amostrada, e para cada amostra
(a partir da segunda) acumulam-se o comprimento percorrido, a soma das
distâncias ao objetivo e o número de colisões do veículo com o cenário.

A pontuação final combina colisões, comprimento de arco e a distância da
*última* amostra ao objetivo. A soma das distâncias é calculada e exposta
em `FitnessComponents`, mas não entra na pontuação.
"""
from dataclasses import dataclass
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from pathevo.config import EvaluationError, ScoringConfig, FOOTPRINT, SAMPLING_STEP
from pathevo.obstacles import ObstacleField, footprint_bounds
from pathevo.path import decode, headings, to_domain, to_points


@dataclass
class FitnessComponents:
	collisions: float
	arc_length: float
	distance_sum: float
	final_distance: float
	samples: int

	def values(self) -> dict:
		return {
			"collisions": self.collisions,
			"distance": self.final_distance,
			"arc_length": self.arc_length,
		}


def scalarize(components: FitnessComponents, scoring: ScoringConfig) -> float:
	"""Soma ponderada com sinal por objetivo (maior = melhor)."""
	values = components.values()
	total = 0.0
	for name, objective in scoring.objectives():
		total += objective.score(values[name])
	return float(total)


class FitnessEvaluator:
	"""Pontua vetores de genes completos (prefixo + genes livres + sufixo).

	Não guarda estado mutável entre chamadas; `scoring` é lido a cada
	avaliação e pode ser alterado pela interface durante a execução.
	"""

	def __init__(self,
				 field: ObstacleField,
				 goal: Tuple[float, float],
				 scoring: ScoringConfig,
				 step: float = SAMPLING_STEP,
				 footprint: Tuple[float, float] = FOOTPRINT,
				 size: Optional[Sequence[float]] = None):
		self.field = field
		self.goal = np.asarray(goal, dtype=float)
		self.scoring = scoring
		self.step = float(step)
		self.footprint = tuple(footprint)
		self.size = np.asarray(size if size is not None else field.size, dtype=float)

	def components(self, genes: np.ndarray) -> FitnessComponents:
		curve = decode(to_points(genes), self.step)
		domain = to_domain(curve, self.size)
		angles = headings(domain)
		stop_on_collision = self.scoring.stop_on_collision

		collisions = 0
		last = len(curve) - 1
		for i in range(1, len(curve)):
			bounds = footprint_bounds(domain[i], angles[i - 1], self.footprint)
			if self.field.collides(bounds):
				collisions += 1
				if stop_on_collision:
					last = i
					break

		walked = curve[:last + 1]
		arc_length = float(np.linalg.norm(np.diff(walked, axis=0), axis=1).sum())
		distance_sum = float(np.linalg.norm(walked[1:] - self.goal, axis=1).sum())
		final_distance = float(np.linalg.norm(walked[-1] - self.goal))
		return FitnessComponents(
			collisions=float(collisions),
			arc_length=arc_length,
			distance_sum=distance_sum,
			final_distance=final_distance,
			samples=last + 1,
		)

	def evaluate(self, genes: np.ndarray) -> float:
		fitness = scalarize(self.components(genes), self.scoring)
		if not math.isfinite(fitness):
			raise EvaluationError(f"fitness não finito: {fitness}")
		return fitness

	__call__ = evaluate
