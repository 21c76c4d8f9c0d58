import os

# pygame sem janela durante os testes
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np
import pygame
import pytest


WHITE = (255, 255, 255, 255)


@pytest.fixture(scope="session", autouse=True)
def pygame_session():
    pygame.init()
    yield
    pygame.quit()


@pytest.fixture
def blank_image():
    """Imagem 100x80 totalmente transparente."""
    return np.zeros((80, 100, 4), dtype=np.uint8)


@pytest.fixture
def wall_image(blank_image):
    """Parede vertical branca nas colunas 45..54, de cima a baixo."""
    image = blank_image.copy()
    image[:, 45:55] = WHITE
    return image
