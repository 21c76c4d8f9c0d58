"""config.py

Parâmetros padrão da busca de caminhos e as estruturas de configuração
compartilhadas entre o solver, a avaliação de fitness e o runner.

`SearchConfig` é montado uma vez por execução (normalmente a partir dos
argumentos de linha de comando). `ScoringConfig` é lido a cada avaliação,
então alterações feitas durante a execução afetam a pontuação imediatamente.
"""
from dataclasses import dataclass, field
from enum import Enum
import math
from typing import Optional, Tuple


# evolução diferencial
POPULATION_SIZE = 50
GENE_COUNT = 30           # 15 pontos de controle livres
GENERATIONS = 400
LOWER_BOUND = -0.5
UPPER_BOUND = 1.5
SCALE_FACTOR = 0.7        # F
CROSSOVER_RATE = 0.05     # CR
MIN_POPULATION = 4

# amostragem da curva e colisões
SAMPLING_STEP = 0.005
CELL_SIZE = 10            # pixels por célula do mapa de ocupação
FOOTPRINT = (12.0, 20.0)  # largura x comprimento do veículo (pixels)

# visualização
TRAJECTORY_LIFETIME = 5
TICK_RATE = 60
STAGE_SIZE = (850, 700)
BORDER_THICKNESS = 10


class ConfigurationError(ValueError):
	"""Configuração inválida; a execução não chega a começar."""


class EvaluationError(RuntimeError):
	"""Função objetivo ausente ou com valor não finito."""


class Sense(Enum):
	MINIMIZE = "minimize"
	MAXIMIZE = "maximize"

	@property
	def sign(self) -> float:
		# o solver sempre maximiza; minimizar é inverter o sinal
		return -1.0 if self is Sense.MINIMIZE else 1.0


@dataclass
class Objective:
	weight: float = 1.0
	sense: Sense = Sense.MINIMIZE

	def __post_init__(self):
		if not math.isfinite(self.weight) or self.weight < 0:
			raise ConfigurationError(f"peso inválido: {self.weight!r}")

	def score(self, value: float) -> float:
		return value * self.weight * self.sense.sign


@dataclass
class ScoringConfig:
	"""Tabela de objetivos e chaves lidas a cada avaliação."""
	collisions: Objective = field(default_factory=Objective)
	distance: Objective = field(default_factory=Objective)
	arc_length: Objective = field(default_factory=Objective)
	automatic_destination: bool = False
	stop_on_collision: bool = False

	def objectives(self):
		return (
			("collisions", self.collisions),
			("distance", self.distance),
			("arc_length", self.arc_length),
		)


def _check_point(name: str, point) -> Tuple[float, float]:
	try:
		x, y = (float(v) for v in point)
	except (TypeError, ValueError):
		raise ConfigurationError(f"{name} deve ser um par (x, y): {point!r}")
	if not (math.isfinite(x) and math.isfinite(y)):
		raise ConfigurationError(f"{name} não finito: {point!r}")
	return x, y


@dataclass
class SearchConfig:
	start: Tuple[float, float] = (0.5, 0.5)
	goal: Tuple[float, float] = (0.5, 0.5)
	population_size: int = POPULATION_SIZE
	gene_count: int = GENE_COUNT
	generations: int = GENERATIONS
	lower_bound: float = LOWER_BOUND
	upper_bound: float = UPPER_BOUND
	scale_factor: float = SCALE_FACTOR
	crossover_rate: float = CROSSOVER_RATE
	step: float = SAMPLING_STEP
	cell_size: int = CELL_SIZE
	footprint: Tuple[float, float] = FOOTPRINT
	lifetime: int = TRAJECTORY_LIFETIME
	log_every: int = 10
	seed: Optional[int] = None

	def validate(self) -> "SearchConfig":
		"""Verifica a configuração inteira antes de qualquer thread iniciar."""
		self.start = _check_point("start", self.start)
		self.goal = _check_point("goal", self.goal)
		if self.population_size < MIN_POPULATION:
			raise ConfigurationError(
				f"população precisa de pelo menos {MIN_POPULATION} indivíduos (recebido {self.population_size})")
		if self.gene_count < 2 or self.gene_count % 2:
			raise ConfigurationError(f"gene_count deve ser par e positivo (recebido {self.gene_count})")
		if not (math.isfinite(self.lower_bound) and math.isfinite(self.upper_bound)):
			raise ConfigurationError("limites dos genes devem ser finitos")
		if self.lower_bound > self.upper_bound:
			raise ConfigurationError("lower_bound maior que upper_bound")
		if self.generations < 0:
			raise ConfigurationError("generations não pode ser negativo")
		if not 0.0 < self.step <= 1.0:
			raise ConfigurationError(f"passo de amostragem inválido: {self.step}")
		if self.cell_size < 1:
			raise ConfigurationError(f"cell_size inválido: {self.cell_size}")
		if self.lifetime < 1:
			raise ConfigurationError(f"lifetime inválido: {self.lifetime}")
		if not 0.0 <= self.crossover_rate <= 1.0:
			raise ConfigurationError(f"crossover_rate fora de [0, 1]: {self.crossover_rate}")
		return self
