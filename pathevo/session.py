"""session.py

Liga o campo de obstáculos, a avaliação de fitness, o evolver e o palco de
trajetórias, e executa o solver numa thread própria.

A thread do solver consulta a flag `running` apenas entre gerações; a
thread de exibição se comunica com ela somente através do palco
(`TrajectoryStage.consume()`). `stop()` limpa a flag e espera a thread
terminar.
"""
import logging
import threading
from typing import Optional

import numpy as np
import pygame

from pathevo.config import ScoringConfig, SearchConfig
from pathevo.evolver import DifferentialEvolver, Individual
from pathevo.fitness import FitnessEvaluator
from pathevo.obstacles import ObstacleField
from pathevo.path import trace
from pathevo.stage import TrajectoryStage

logger = logging.getLogger(__name__)


class SearchSession:
	def __init__(self,
				 image: np.ndarray,
				 config: SearchConfig,
				 scoring: Optional[ScoringConfig] = None,
				 background: Optional[pygame.Surface] = None):
		# qualquer erro de configuração acontece aqui, antes da thread existir
		self.config = config.validate()
		self.scoring = scoring if scoring is not None else ScoringConfig()
		self.background = background

		self.field = ObstacleField(image, self.config.cell_size)
		self.evaluator = FitnessEvaluator(self.field,
										  self.config.goal,
										  self.scoring,
										  step=self.config.step,
										  footprint=self.config.footprint)
		self.stage = TrajectoryStage(self.field.size, self.config.lifetime)

		self.evolver = DifferentialEvolver(self.config.scale_factor,
										   self.config.crossover_rate,
										   seed=self.config.seed)
		suffix = () if self.scoring.automatic_destination else self.config.goal
		self.evolver.initialize(self.config.population_size,
								self.config.gene_count,
								self.config.lower_bound,
								self.config.upper_bound,
								prefix=self.config.start,
								suffix=suffix)
		self.evolver.set_objective_function(self.evaluator)

		self._running = threading.Event()
		self._thread: Optional[threading.Thread] = None
		self.error: Optional[BaseException] = None

	@property
	def running(self) -> bool:
		return self._running.is_set()

	@property
	def generation(self) -> int:
		return self.evolver.generation

	def curves(self):
		"""Curvas da população atual em coordenadas do cenário."""
		field = self.field if self.scoring.stop_on_collision else None
		return [
			trace(genome.control_points(), self.config.step, self.field.size, field, self.config.footprint)
			for genome in self.evolver.genomes()
		]

	def step(self) -> Individual:
		"""Uma geração: evolui e publica o resultado no palco."""
		self.evolver.improve()
		self.stage.publish(self.curves(),
						   self.evolver.fitness,
						   background=self.background,
						   population=self.evolver.pop)
		best = self.evolver.best()
		if self.config.log_every and self.generation % self.config.log_every == 0:
			logger.info("geração %4d: melhor fitness = %.4f", self.generation, best.fitness)
		return best

	def _loop(self) -> None:
		try:
			while self.generation < self.config.generations and self._running.is_set():
				self.step()
		except Exception as exc:
			self.error = exc
			logger.exception("solver interrompido na geração %d", self.generation)
		finally:
			self._running.clear()
			logger.info("solver finalizado após %d gerações", self.generation)

	def start(self) -> None:
		if self._thread is not None:
			raise RuntimeError("sessão já iniciada")
		self._running.set()
		self._thread = threading.Thread(target=self._loop, name="pathevo-solver", daemon=True)
		self._thread.start()

	def stop(self, timeout: Optional[float] = None) -> None:
		self._running.clear()
		if self._thread is not None:
			self._thread.join(timeout)
			if self._thread.is_alive():
				# o evolver só pode ser parado depois que a thread sair
				logger.warning("thread do solver ainda ativa após %.1fs", timeout)
				return
		self.evolver.stop()

	def join(self, timeout: Optional[float] = None) -> None:
		if self._thread is not None:
			self._thread.join(timeout)

	def run(self) -> Individual:
		"""Executa todas as gerações na thread atual (modo sem janela)."""
		self._running.set()
		self._loop()
		if self.error is not None:
			raise self.error
		self.evolver.stop()
		return self.evolver.best()
