"""evolver.py

Evolução diferencial (DE/rand/1/bin) sobre vetores reais de tamanho fixo.

Cada geração cria, para cada alvo i, um vetor de teste a + F * (b - c) a
partir de três outros indivíduos distintos, faz o crossover binomial com o
alvo (pelo menos um gene vem do vetor de teste), limita os genes ao
intervalo declarado e substitui o alvo se o teste não for pior. A
substituição é gulosa e síncrona: todos os testes da geração são
comparados contra a população anterior antes de qualquer troca, logo o
melhor fitness da população nunca piora.

Prefixo e sufixo fixos ficam fora da população: cada vetor livre é montado
num `PathGenome` apenas ao expor os indivíduos e ao chamar a função
objetivo.
"""
from dataclasses import dataclass
from enum import Enum
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from numpy.random import default_rng

from pathevo.config import (
	ConfigurationError,
	EvaluationError,
	CROSSOVER_RATE,
	MIN_POPULATION,
	SCALE_FACTOR,
)
from pathevo.path import PathGenome


class SolverState(Enum):
	INITIALIZED = "initialized"
	EVOLVING = "evolving"
	STOPPED = "stopped"


@dataclass
class Individual:
	genes: np.ndarray
	fitness: float


class DifferentialEvolver:
	def __init__(self,
				 scale_factor: float = SCALE_FACTOR,
				 crossover_rate: float = CROSSOVER_RATE,
				 maximize: bool = True,
				 seed: Optional[int] = None):
		self.scale_factor = float(scale_factor)
		self.crossover_rate = float(crossover_rate)
		self.maximize = bool(maximize)
		self.rng = default_rng(seed)

		self.state = SolverState.INITIALIZED
		self.generation = 0
		self.pop: Optional[np.ndarray] = None
		self.fitness: Optional[np.ndarray] = None
		self.prefix: Optional[Tuple[float, ...]] = None
		self.suffix: Optional[Tuple[float, ...]] = None
		self.lower_bound = 0.0
		self.upper_bound = 0.0
		self._objective: Optional[Callable[[np.ndarray], float]] = None

	def initialize(self,
				   population_size: int,
				   gene_count: int,
				   lower_bound: float,
				   upper_bound: float,
				   prefix: Sequence[float] = (),
				   suffix: Sequence[float] = ()) -> None:
		population_size = int(population_size)
		gene_count = int(gene_count)
		if population_size < MIN_POPULATION:
			raise ConfigurationError(
				f"evolução diferencial precisa de pelo menos {MIN_POPULATION} indivíduos (recebido {population_size})")
		if gene_count < 1:
			raise ConfigurationError("vetor de genes vazio")
		if not (math.isfinite(lower_bound) and math.isfinite(upper_bound)) or lower_bound > upper_bound:
			raise ConfigurationError(f"limites inválidos: [{lower_bound}, {upper_bound}]")

		self.lower_bound = float(lower_bound)
		self.upper_bound = float(upper_bound)
		self.prefix = tuple(float(x) for x in prefix) or None
		self.suffix = tuple(float(x) for x in suffix) or None
		samples = self.rng.random((population_size, gene_count))
		self.pop = self.lower_bound + samples * (self.upper_bound - self.lower_bound)
		self.fitness = None
		self.generation = 0
		self.state = SolverState.EVOLVING

	def set_objective_function(self, fn: Callable[[np.ndarray], float]) -> None:
		self._objective = fn

	@property
	def population_size(self) -> int:
		return 0 if self.pop is None else self.pop.shape[0]

	@property
	def gene_count(self) -> int:
		return 0 if self.pop is None else self.pop.shape[1]

	def genome(self, free: np.ndarray) -> PathGenome:
		return PathGenome(free, self.prefix, self.suffix)

	def genomes(self) -> List[PathGenome]:
		return [] if self.pop is None else [self.genome(ind) for ind in self.pop]

	def full_vector(self, free: np.ndarray) -> np.ndarray:
		return self.genome(free).to_vector()

	def _evaluate(self, free: np.ndarray) -> float:
		if self._objective is None:
			raise EvaluationError("função objetivo não definida")
		value = float(self._objective(self.full_vector(free)))
		if not math.isfinite(value):
			raise EvaluationError(f"função objetivo retornou {value}")
		return value

	def _evaluate_population(self) -> np.ndarray:
		return np.array([self._evaluate(ind) for ind in self.pop], dtype=float)

	def _ensure_evaluated(self) -> np.ndarray:
		if self.pop is None:
			raise RuntimeError("initialize() deve ser chamado antes")
		if self.fitness is None:
			self.fitness = self._evaluate_population()
		return self.fitness

	def _better_or_equal(self, a: float, b: float) -> bool:
		return a >= b if self.maximize else a <= b

	def _pick_donors(self, target: int) -> np.ndarray:
		candidates = np.delete(np.arange(self.population_size), target)
		return self.rng.choice(candidates, size=3, replace=False)

	def _mutate(self, target: int) -> np.ndarray:
		a, b, c = self._pick_donors(target)
		return self.pop[a] + self.scale_factor * (self.pop[b] - self.pop[c])

	def _crossover(self, target: np.ndarray, mutant: np.ndarray) -> np.ndarray:
		mask = self.rng.random(target.shape) < self.crossover_rate
		# garante pelo menos um gene do vetor mutante
		mask[int(self.rng.integers(0, target.size))] = True
		return np.where(mask, mutant, target)

	def _clamp(self, v: np.ndarray) -> np.ndarray:
		return np.clip(v, self.lower_bound, self.upper_bound)

	def improve(self) -> None:
		"""Executa uma geração completa."""
		if self.state is SolverState.STOPPED:
			raise RuntimeError("solver já foi parado")
		if self.pop is None:
			raise RuntimeError("initialize() deve ser chamado antes de improve()")
		if self._objective is None:
			raise EvaluationError("função objetivo não definida")
		self._ensure_evaluated()

		trials = np.empty_like(self.pop)
		for i in range(self.population_size):
			mutant = self._mutate(i)
			trials[i] = self._clamp(self._crossover(self.pop[i], mutant))

		trial_fitness = np.array([self._evaluate(t) for t in trials], dtype=float)
		new_pop = self.pop.copy()
		new_fitness = self.fitness.copy()
		for i in range(self.population_size):
			if self._better_or_equal(trial_fitness[i], self.fitness[i]):
				new_pop[i] = trials[i]
				new_fitness[i] = trial_fitness[i]

		self.pop = new_pop
		self.fitness = new_fitness
		self.generation += 1

	def stop(self) -> None:
		self.state = SolverState.STOPPED

	def get_population(self) -> List[Individual]:
		if self.pop is None:
			return []
		fitness = self._ensure_evaluated()
		return [Individual(self.full_vector(ind), float(f)) for ind, f in zip(self.pop, fitness)]

	def get_fitness(self, i: int) -> float:
		return float(self._ensure_evaluated()[i])

	def best(self) -> Individual:
		self._ensure_evaluated()
		idx = int(np.argmax(self.fitness)) if self.maximize else int(np.argmin(self.fitness))
		return Individual(self.full_vector(self.pop[idx]), float(self.fitness[idx]))

	def run(self, generations: int, on_generation=None, should_continue=None) -> Individual:
		"""Evolui por até `generations` gerações.

		`should_continue` é consultado somente entre gerações. `on_generation`
		recebe (geração, evolver) após cada `improve()`.
		"""
		for _ in range(int(generations)):
			if should_continue is not None and not should_continue():
				break
			self.improve()
			if on_generation is not None:
				on_generation(self.generation, self)
		return self.best()
