"""stage.py

Palco de trajetórias: guarda as curvas das últimas gerações com um tempo
de vida que decai, colore cada curva pelo fitness relativo e entrega o
quadro renderizado para a thread de exibição.

A única área compartilhada entre o solver e a exibição é o buffer pendente
e a flag `data_available`, ambos protegidos pelo mesmo lock. Um novo
`publish()` substitui um buffer ainda não consumido, então a exibição vê
as gerações em ordem, podendo pular algumas.
"""
from collections import deque
import colorsys
from dataclasses import dataclass
import threading
from typing import Deque, List, Optional, Sequence, Tuple

import numpy as np
import pygame

from pathevo.config import ConfigurationError, TRAJECTORY_LIFETIME

Color = Tuple[int, int, int, int]

HUE_START = -180.0
HUE_SPAN = 300.0


@dataclass
class Trajectory:
	points: np.ndarray
	fitness: float
	remaining: int


def hsv_color(hue_degrees: float, saturation: float = 1.0, value: float = 1.0) -> Tuple[int, int, int]:
	r, g, b = colorsys.hsv_to_rgb((hue_degrees % 360.0) / 360.0, saturation, value)
	return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


def normalize(values: Sequence[float]) -> np.ndarray:
	"""Normaliza para [0, 1]; se todos forem iguais, todos valem 1."""
	values = np.asarray(values, dtype=float)
	if values.size == 0:
		return values
	lo = float(values.min())
	hi = float(values.max())
	if lo == hi:
		return np.ones_like(values)
	return (values - lo) / (hi - lo)


class TrajectoryStage:
	def __init__(self, size: Tuple[int, int], lifetime: int = TRAJECTORY_LIFETIME, line_width: int = 1):
		if lifetime < 1:
			raise ConfigurationError(f"lifetime deve ser positivo: {lifetime}")
		self.size = (int(size[0]), int(size[1]))
		self.lifetime = int(lifetime)
		self.line_width = int(line_width)
		self.trajectories: Deque[Trajectory] = deque()
		self.ticks = 0

		self._lock = threading.Lock()
		self._pending: Optional[pygame.Surface] = None
		self._data_available = False
		self._population: Optional[np.ndarray] = None
		self._fitness: Optional[np.ndarray] = None
		self._generation = 0

	# decaimento

	def tick(self) -> None:
		"""Avança o relógio de decaimento e remove as trajetórias expiradas."""
		self.ticks += 1
		for trajectory in self.trajectories:
			trajectory.remaining -= 1
		# mais antigas primeiro; nunca reordena por fitness
		while self.trajectories and self.trajectories[0].remaining <= 0:
			self.trajectories.popleft()

	def push_generation(self, curves: Sequence[np.ndarray], fitness: Sequence[float]) -> None:
		if len(curves) != len(fitness):
			raise ValueError("curves e fitness devem ter o mesmo tamanho")
		self.tick()
		for curve, value in zip(curves, fitness):
			self.trajectories.append(Trajectory(np.asarray(curve, dtype=float), float(value), self.lifetime))

	# cores

	def normalized_fitness(self) -> np.ndarray:
		return normalize([t.fitness for t in self.trajectories])

	def colors(self) -> List[Color]:
		colors = []
		for trajectory, norm in zip(self.trajectories, self.normalized_fitness()):
			scale = max(0.0, trajectory.remaining / float(self.lifetime))
			r, g, b = hsv_color(norm * HUE_SPAN + HUE_START)
			colors.append((r, g, b, int(round(norm * scale * 255))))
		return colors

	def render(self, background: Optional[pygame.Surface] = None) -> pygame.Surface:
		"""Desenha o cenário e as trajetórias vivas numa nova Surface."""
		frame = pygame.Surface(self.size, pygame.SRCALPHA)
		frame.fill((0, 0, 0, 0))
		if background is not None:
			frame.blit(background, (0, 0))
		# draw.lines não mistura alfa: cada curva vai para a camada limpa e só
		# então é composta sobre o quadro
		layer = pygame.Surface(self.size, pygame.SRCALPHA)
		layer.fill((0, 0, 0, 0))
		for trajectory, color in zip(self.trajectories, self.colors()):
			if len(trajectory.points) < 2 or color[3] == 0:
				continue
			area = pygame.draw.lines(layer, color, False, trajectory.points.tolist(), self.line_width)
			frame.blit(layer, area.topleft, area)
			layer.fill((0, 0, 0, 0), area)
		return frame

	# troca com a thread de exibição

	def publish(self,
				curves: Sequence[np.ndarray],
				fitness: Sequence[float],
				background: Optional[pygame.Surface] = None,
				population: Optional[np.ndarray] = None) -> None:
		self.push_generation(curves, fitness)
		frame = self.render(background)
		population = None if population is None else np.array(population, dtype=float, copy=True)
		fitness = np.array(fitness, dtype=float, copy=True)
		with self._lock:
			self._pending = frame
			self._data_available = True
			self._population = population
			self._fitness = fitness
			self._generation += 1

	@property
	def data_available(self) -> bool:
		with self._lock:
			return self._data_available

	def consume(self) -> Optional[pygame.Surface]:
		"""Retorna o último quadro publicado, ou None se não houver novidade."""
		with self._lock:
			if not self._data_available:
				return None
			frame = self._pending
			self._pending = None
			self._data_available = False
		return frame

	def snapshot(self) -> Tuple[Optional[np.ndarray], Optional[np.ndarray], int]:
		"""(população, fitness, número de publicações) da última publicação."""
		with self._lock:
			population = None if self._population is None else self._population.copy()
			fitness = None if self._fitness is None else self._fitness.copy()
			return population, fitness, self._generation
