import numpy as np


RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
BLACK = (0, 0, 0, 255)
CLEAR = (0, 0, 0, 0)


def solid(width, height, color):
    """RGBA patch filled with one color."""
    return np.full((height, width, 4), color, dtype=np.uint8)


def pixel(frame, x, y):
    return tuple(int(v) for v in frame[y, x])
