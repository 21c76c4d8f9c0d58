"""obstacles.py

Mapa de ocupação do cenário. A imagem RGBA desenhada pelo usuário é
dividida em células quadradas; células ocupadas consecutivas numa mesma
coluna são fundidas em retângulos mais altos. Os retângulos servem como
filtro rápido (bounding box) e a imagem confirma a colisão pixel a pixel.

Um pixel é considerado ocupado quando não é transparente (alpha > 0) e
não é preto puro.
"""
from dataclasses import dataclass
import logging
import math
from typing import List, Optional, Tuple

import numpy as np
import pygame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObstacleRect:
	left: float
	top: float
	width: float
	height: float

	@property
	def right(self) -> float:
		return self.left + self.width

	@property
	def bottom(self) -> float:
		return self.top + self.height

	def intersection(self, other: "ObstacleRect") -> Optional["ObstacleRect"]:
		"""Retorna a interseção com `other` ou None se forem disjuntos."""
		left = max(self.left, other.left)
		top = max(self.top, other.top)
		right = min(self.right, other.right)
		bottom = min(self.bottom, other.bottom)
		if left < right and top < bottom:
			return ObstacleRect(left, top, right - left, bottom - top)
		return None


def occupancy_mask(image: np.ndarray) -> np.ndarray:
	"""Máscara booleana (H, W): não transparente e não preto."""
	image = np.asarray(image)
	if image.ndim != 3 or image.shape[2] != 4:
		raise ValueError(f"imagem deve ter forma (H, W, 4), recebido {image.shape}")
	return (image[..., 3] > 0) & image[..., :3].any(axis=-1)


def _pixel_span(rect: ObstacleRect, shape: Tuple[int, int]) -> Tuple[int, int, int, int]:
	# varredura inclusiva: borda distante arredondada para cima
	h, w = shape
	x0 = max(0, int(math.floor(rect.left)))
	y0 = max(0, int(math.floor(rect.top)))
	x1 = min(w - 1, int(math.ceil(rect.right)))
	y1 = min(h - 1, int(math.ceil(rect.bottom)))
	return x0, y0, x1, y1


def _mask_hit(mask: np.ndarray, rect: ObstacleRect) -> bool:
	x0, y0, x1, y1 = _pixel_span(rect, mask.shape)
	if x0 > x1 or y0 > y1:
		return False
	return bool(mask[y0:y1 + 1, x0:x1 + 1].any())


def is_occupied(image: np.ndarray, rect: ObstacleRect) -> bool:
	"""True se algum pixel dentro de `rect` (inclusivo) está ocupado."""
	return _mask_hit(occupancy_mask(image), rect)


def build(image: np.ndarray, cell_size: int) -> List[ObstacleRect]:
	"""Cobre os pixels ocupados de `image` com retângulos.

	Percorre a grade coluna a coluna, de cima para baixo. Células ocupadas
	consecutivas na mesma coluna viram um único retângulo; uma célula vazia
	interrompe a fusão. As células da última linha/coluna são truncadas na
	borda da imagem.
	"""
	if cell_size < 1:
		raise ValueError(f"cell_size deve ser positivo: {cell_size}")
	mask = occupancy_mask(image)
	h, w = mask.shape
	x_parts = int(math.ceil(w / cell_size))
	y_parts = int(math.ceil(h / cell_size))

	rects: List[ObstacleRect] = []
	for cx in range(x_parts):
		left = cx * cell_size
		width = min(cell_size, w - left)
		run_top = None
		run_height = 0
		for cy in range(y_parts):
			top = cy * cell_size
			height = min(cell_size, h - top)
			if _mask_hit(mask, ObstacleRect(left, top, width, height)):
				if run_top is None:
					run_top = top
				run_height += height
			elif run_top is not None:
				rects.append(ObstacleRect(left, run_top, width, run_height))
				run_top = None
				run_height = 0
		if run_top is not None:
			rects.append(ObstacleRect(left, run_top, width, run_height))
	return rects


def footprint_bounds(center, heading: float, size: Tuple[float, float]) -> ObstacleRect:
	"""Bounding box alinhada aos eixos do veículo centrado em `center`.

	O veículo é um retângulo largura x comprimento cujo comprimento aponta
	na direção de `heading` (radianos).
	"""
	width, length = size
	c = abs(math.cos(heading))
	s = abs(math.sin(heading))
	# comprimento ao longo do heading, largura perpendicular
	bw = length * c + width * s
	bh = length * s + width * c
	x, y = float(center[0]), float(center[1])
	return ObstacleRect(x - bw / 2.0, y - bh / 2.0, bw, bh)


class ObstacleField:
	"""Retângulos de obstáculo + imagem de ocupação, somente leitura após construído."""

	def __init__(self, image: np.ndarray, cell_size: int):
		self.image = np.array(image, dtype=np.uint8, copy=True)
		self.image.setflags(write=False)
		self.cell_size = int(cell_size)
		self.mask = occupancy_mask(self.image)
		self.mask.setflags(write=False)
		self.rects = build(self.image, self.cell_size)
		# arrays paralelos para o teste de bounding box vetorizado
		if self.rects:
			self._boxes = np.array([[r.left, r.top, r.right, r.bottom] for r in self.rects], dtype=float)
		else:
			self._boxes = np.zeros((0, 4), dtype=float)
		logger.debug("campo de obstáculos %dx%d: %d retângulos", self.width, self.height, len(self.rects))

	@property
	def width(self) -> int:
		return int(self.image.shape[1])

	@property
	def height(self) -> int:
		return int(self.image.shape[0])

	@property
	def size(self) -> Tuple[int, int]:
		return self.width, self.height

	def collides(self, bounds: ObstacleRect) -> bool:
		"""Colisão de `bounds` com o cenário: bounding box e depois pixels."""
		if not self.rects:
			return False
		boxes = self._boxes
		left = np.maximum(boxes[:, 0], bounds.left)
		top = np.maximum(boxes[:, 1], bounds.top)
		right = np.minimum(boxes[:, 2], bounds.right)
		bottom = np.minimum(boxes[:, 3], bounds.bottom)
		hits = np.nonzero((left < right) & (top < bottom))[0]
		for i in hits:
			inter = ObstacleRect(left[i], top[i], right[i] - left[i], bottom[i] - top[i])
			if _mask_hit(self.mask, inter):
				return True
		return False


def surface_to_rgba(surface: "pygame.Surface") -> np.ndarray:
	"""Converte uma Surface do pygame em um array (H, W, 4) uint8."""
	rgb = pygame.surfarray.array3d(surface)
	if surface.get_flags() & pygame.SRCALPHA:
		alpha = pygame.surfarray.array_alpha(surface)
	else:
		alpha = np.full(rgb.shape[:2], 255, dtype=np.uint8)
	# surfarray indexa por (x, y); a imagem é (linha, coluna)
	rgba = np.dstack([rgb, alpha[..., None]]).astype(np.uint8)
	return np.ascontiguousarray(rgba.transpose(1, 0, 2))
