# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They are fundamental to the application's framework, such as rendering
properties, default window sizes, the fixed kernel settings and the
seed wire format, none of which are part of the experimental configuration.
"""

# Visualization settings
# Set to True to run in borderless fullscreen mode.
# Set to False to run in a fixed-size window (see DEFAULT_WINDOW_SIZE).
FULLSCREEN = False
DEFAULT_WINDOW_SIZE = (1200, 900)
FPS = 60
BACKGROUND_COLOR = (0, 0, 0)
DEFAULT_PARTICLE_SIZE = 3
HUD_TEXT_COLOR = (200, 200, 200)

# --- Motion Trails ---
# Alpha value for the fade surface (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 90

# One color per particle type, in type order (red, green, blue, yellow, cyan, magenta).
TYPE_COLORS = [
    (255, 80, 80),
    (80, 255, 80),
    (80, 80, 255),
    (255, 255, 80),
    (80, 255, 255),
    (255, 80, 255),
]

# --- Kernel ---
# Half-width of the neighbor window in grid steps. The window is 17x17
# minus the particle itself, independent of the grid side.
NEIGHBOR_RANGE = 8
# Fixed stabilization scale applied to every pairwise force.
FORCE_SCALE = 0.001
# Particles spawn uniformly in [-SPAWN_EXTENT, SPAWN_EXTENT]^2.
SPAWN_EXTENT = 0.8

# --- Quantization / Seeds ---
QUANTIZATION_LEVELS = 201
QUANTIZATION_STEP = 0.01
MATRIX_SIZE = 6
SEED_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
# Smallest width with 62**47 > 201**36.
SEED_LENGTH = 47
