"""
Responsive sizing of the QR bitmap
"""
import math

CONTAINER_PADDING = 48
MOBILE_BREAKPOINT = 480
TABLET_BREAKPOINT = 768
DEFAULT_VIEWPORT_WIDTH = 1024


def compute_responsive_size(base_size, viewport_width, expanded):
    """
    Bitmap side for a viewport

    Args:
        base_size (int): Requested size
        viewport_width (int): Viewport width in pixels
        expanded (bool): Whether the detail panel is open

    Returns:
        int: Size in pixels, never wider than viewport_width - 48
    """
    max_width = viewport_width - CONTAINER_PADDING

    if viewport_width < MOBILE_BREAKPOINT:
        if expanded:
            target = min(base_size, max_width * 0.85)
        else:
            target = min(base_size * 0.8, max_width * 0.7)
    elif viewport_width < TABLET_BREAKPOINT:
        target = base_size if expanded else base_size * 0.75
    else:
        target = base_size if expanded else base_size * 0.7

    return max(0, math.floor(min(target, max_width)))
