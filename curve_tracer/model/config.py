"""
Configuration constants for trace-to-model fitting.

Values are chosen for the curve tracer front end: a 0-5 V sweep with a
current limit in the milliampere range, sampled a few thousand times per
trace. Changing them changes fitted results, so golden values in the
regression tests must be regenerated together with any edit here.
"""

# =============================================================================
# Resampling
# =============================================================================

DEFAULT_MIN_V = 0.0
"""
Lower edge of the fitted voltage domain [V] (inclusive).
"""

DEFAULT_MAX_V = 5.0
"""
Upper edge of the fitted voltage domain [V] (exclusive).

Matches the maximum sweep amplitude of the acquisition front end.
"""

DEFAULT_BUCKETS = 500
"""
Number of equal-width voltage buckets used to resample a raw trace.

500 buckets over 5 V gives 10 mV resolution, well below the thermal
voltage scale of a silicon junction (n*V_T ~ 26-50 mV), while keeping
the Gauss-Newton working set small regardless of acquisition rate.
"""

DEFAULT_MIN_BUCKET_POPULATION = 3
"""
Minimum number of raw samples a bucket needs to be kept.

Buckets with fewer samples are dropped instead of zero-filled, so sparse
regions of the sweep do not pull the fit towards an artificial zero.
"""

# =============================================================================
# Linear seed
# =============================================================================

OFFSET_WINDOW_MIN_V = 0.0
"""
Lower edge of the small-voltage window used for the current offset [V].
"""

OFFSET_WINDOW_MAX_V = 0.05
"""
Upper edge (exclusive) of the small-voltage window used for the current
offset [V]. Below ~50 mV a silicon junction conducts negligibly, so the
mean current there is the instrument offset.
"""

OFFSET_MIN_SAMPLES = 100
"""
Minimum number of samples in the offset window for the offset estimate.

With fewer samples the mean is dominated by noise and the offset is
taken as zero instead.
"""

LOG_CURRENT_FLOOR = 1e-5
"""
Floor applied to offset-corrected currents before taking the logarithm [A].

Keeps log() defined for samples at or below the offset. Roughly the noise
floor of the current sense amplifier.
"""

# =============================================================================
# Shockley model
# =============================================================================

MIN_SATURATION_CURRENT = 1e-18
"""
Smallest saturation current the model accepts [A].

Real silicon junctions sit around 1e-15..1e-9 A; anything at or below
zero makes the model degenerate.
"""

MIN_THERMAL_SCALE = 1e-3
"""
Smallest n*V_T the model accepts [V].

The thermal voltage alone is ~25.85 mV at 300 K; 1 mV keeps exp(v/nV_T)
finite over the sweep while leaving room for the optimizer to move.
"""

MAX_CURRENT_RATIO = 1e10
"""
Current ceiling, relative to I_S, that bounds the model's valid domain.

max_v is the voltage at which the exponential term reaches
MAX_CURRENT_RATIO * I_S; plots do not extrapolate past it.
"""

# =============================================================================
# Gauss-Newton defaults
# =============================================================================

GN_MIN_ITERATIONS = 5
GN_MAX_ITERATIONS = 50
GN_MAX_ABSOLUTE_CHANGE = 1e-16
GN_MAX_TOTAL_ERROR = 1e-13
GN_MAX_ERROR_IMPROVEMENT = 1e-6
GN_MIN_SHIFT_CUT = 1e-6
GN_SHIFT_CUT_REFINING_STEP = 0.1
GN_SHIFT_CUT_SPEED_UP = 2.0

# =============================================================================
# Reporting
# =============================================================================

MODEL_CURVE_POINTS = 101
"""
Number of points used to sample a fitted model for plotting.
"""

MODEL_CURVE_MAX_V = 5.0
"""
Voltage limit for sampled model curves [V].
"""

__all__ = [
    'DEFAULT_MIN_V',
    'DEFAULT_MAX_V',
    'DEFAULT_BUCKETS',
    'DEFAULT_MIN_BUCKET_POPULATION',
    'OFFSET_WINDOW_MIN_V',
    'OFFSET_WINDOW_MAX_V',
    'OFFSET_MIN_SAMPLES',
    'LOG_CURRENT_FLOOR',
    'MIN_SATURATION_CURRENT',
    'MIN_THERMAL_SCALE',
    'MAX_CURRENT_RATIO',
    'GN_MIN_ITERATIONS',
    'GN_MAX_ITERATIONS',
    'GN_MAX_ABSOLUTE_CHANGE',
    'GN_MAX_TOTAL_ERROR',
    'GN_MAX_ERROR_IMPROVEMENT',
    'GN_MIN_SHIFT_CUT',
    'GN_SHIFT_CUT_REFINING_STEP',
    'GN_SHIFT_CUT_SPEED_UP',
    'MODEL_CURVE_POINTS',
    'MODEL_CURVE_MAX_V',
]
