"""Runner da busca de caminhos com evolução diferencial.

Monta o cenário (borda branca + imagem opcional), inicia o solver numa
thread e exibe as trajetórias de cada geração numa janela pygame. Com
`--headless` roda sem janela e apenas registra o progresso no log.
"""
import argparse
import logging
import sys

import pygame

from pathevo.config import (
	ConfigurationError,
	Objective,
	ScoringConfig,
	SearchConfig,
	Sense,
	BORDER_THICKNESS,
	CELL_SIZE,
	GENE_COUNT,
	GENERATIONS,
	POPULATION_SIZE,
	STAGE_SIZE,
	TICK_RATE,
	TRAJECTORY_LIFETIME,
)
from pathevo.obstacles import surface_to_rgba
from pathevo.session import SearchSession

logger = logging.getLogger(__name__)

START_COLOR = (50, 200, 50)
GOAL_COLOR = (220, 40, 40)
BACKGROUND_COLOR = (30, 30, 30)


def draw_border(surface: pygame.Surface, thickness: int = BORDER_THICKNESS) -> None:
	# sair do palco conta como colisão
	pygame.draw.rect(surface, (255, 255, 255, 255), surface.get_rect(), thickness)


def make_scenario(size, image_path=None) -> pygame.Surface:
	"""Superfície transparente com borda branca, opcionalmente com uma imagem desenhada por cima."""
	scenario = pygame.Surface(size, pygame.SRCALPHA)
	scenario.fill((0, 0, 0, 0))
	if image_path:
		drawing = pygame.image.load(image_path)
		if drawing.get_size() != tuple(size):
			drawing = pygame.transform.scale(drawing, size)
		scenario.blit(drawing, (0, 0))
	draw_border(scenario)
	return scenario


def build_config(args) -> SearchConfig:
	return SearchConfig(
		start=tuple(args.start),
		goal=tuple(args.goal),
		population_size=args.pop,
		gene_count=args.genes,
		generations=args.gens,
		cell_size=args.cell_size,
		lifetime=args.lifetime,
		log_every=args.log_every,
		seed=args.seed,
	)


def build_scoring(args) -> ScoringConfig:
	return ScoringConfig(
		collisions=Objective(args.collisions, Sense(args.collisions_sense)),
		distance=Objective(args.distance, Sense(args.distance_sense)),
		arc_length=Objective(args.arc_length, Sense(args.arc_length_sense)),
		automatic_destination=args.auto_destination,
		stop_on_collision=args.stop_on_collision,
	)


def draw_markers(screen, config: SearchConfig, size) -> None:
	w, h = size
	sx, sy = config.start
	gx, gy = config.goal
	pygame.draw.circle(screen, START_COLOR, (int(sx * w), int(sy * h)), 8)
	pygame.draw.circle(screen, GOAL_COLOR, (int(gx * w), int(gy * h)), 8)


def run_headless(session: SearchSession) -> None:
	best = session.run()
	logger.info("melhor fitness: %.4f", best.fitness)
	components = session.evaluator.components(best.genes)
	logger.info("colisões=%d comprimento=%.4f distância final=%.4f",
				int(components.collisions), components.arc_length, components.final_distance)


def run_window(session: SearchSession, scenario: pygame.Surface, fps: int) -> None:
	pygame.init()
	size = scenario.get_size()
	screen = pygame.display.set_mode(size)
	pygame.display.set_caption("PathEvo")
	clock = pygame.time.Clock()

	frame = scenario
	session.start()
	try:
		open_ = True
		while open_:
			for ev in pygame.event.get():
				if ev.type == pygame.QUIT:
					open_ = False
				elif ev.type == pygame.KEYDOWN and ev.key == pygame.K_ESCAPE:
					open_ = False

			latest = session.stage.consume()
			if latest is not None:
				frame = latest

			screen.fill(BACKGROUND_COLOR)
			screen.blit(frame, (0, 0))
			draw_markers(screen, session.config, size)
			pygame.display.flip()
			clock.tick(fps)
	finally:
		session.stop()
		pygame.quit()
	if session.error is not None:
		logger.error("o solver terminou com erro: %s", session.error)


def run(args) -> int:
	logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
						format="%(asctime)s %(name)s %(levelname)s: %(message)s")
	size = (args.width, args.height)
	try:
		scenario = make_scenario(size, args.scenario)
		scoring = build_scoring(args)
		session = SearchSession(surface_to_rgba(scenario),
								build_config(args),
								scoring,
								background=scenario)
	except ConfigurationError as exc:
		logger.error("configuração inválida: %s", exc)
		return 2
	except (pygame.error, OSError) as exc:
		logger.error("não foi possível carregar o cenário %s: %s", args.scenario, exc)
		return 2

	if args.headless:
		run_headless(session)
	else:
		run_window(session, scenario, args.fps)
	return 0


def parse_args(argv=None):
	p = argparse.ArgumentParser(description="busca de caminhos com evolução diferencial")
	p.add_argument("--pop", type=int, default=POPULATION_SIZE, help="tamanho da população")
	p.add_argument("--gens", type=int, default=GENERATIONS, help="número máximo de gerações")
	p.add_argument("--genes", type=int, default=GENE_COUNT, help="genes livres (2 por ponto de controle)")
	p.add_argument("--seed", type=int, help="seed aleatória")
	p.add_argument("--start", type=float, nargs=2, default=(0.1, 0.5), metavar=("X", "Y"),
				   help="ponto de partida normalizado")
	p.add_argument("--goal", type=float, nargs=2, default=(0.9, 0.5), metavar=("X", "Y"),
				   help="objetivo normalizado")
	p.add_argument("--scenario", help="imagem PNG com os obstáculos desenhados")
	p.add_argument("--width", type=int, default=STAGE_SIZE[0])
	p.add_argument("--height", type=int, default=STAGE_SIZE[1])
	p.add_argument("--cell-size", dest="cell_size", type=int, default=CELL_SIZE,
				   help="lado das células do mapa de ocupação (pixels)")
	p.add_argument("--lifetime", type=int, default=TRAJECTORY_LIFETIME,
				   help="gerações que uma trajetória permanece visível")
	senses = [s.value for s in Sense]
	p.add_argument("--collisions", type=float, default=1.0, help="peso das colisões")
	p.add_argument("--collisions-sense", dest="collisions_sense", choices=senses, default="minimize")
	p.add_argument("--distance", type=float, default=1.0, help="peso da distância ao objetivo")
	p.add_argument("--distance-sense", dest="distance_sense", choices=senses, default="minimize")
	p.add_argument("--arc-length", dest="arc_length", type=float, default=1.0, help="peso do caminho percorrido")
	p.add_argument("--arc-length-sense", dest="arc_length_sense", choices=senses, default="minimize")
	p.add_argument("--auto-destination", dest="auto_destination", action="store_true",
				   help="destino automático: o fim da curva também evolui")
	p.add_argument("--stop-on-collision", dest="stop_on_collision", action="store_true",
				   help="interrompe a avaliação da curva na primeira colisão")
	p.add_argument("--headless", action="store_true", help="executa sem janela")
	p.add_argument("--fps", type=int, default=TICK_RATE, help="quadros por segundo da janela")
	p.add_argument("--log-every", dest="log_every", type=int, default=10, help="intervalo de log em gerações")
	p.add_argument("--log-level", dest="log_level", default="info")
	return p.parse_args(argv)


if __name__ == '__main__':
	sys.exit(run(parse_args()))
