"""Color math: sRGB gamma transfer and linear interpolation."""
