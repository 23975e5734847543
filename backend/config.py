# Print-file tolerance (percent). Printful rejects files outside this band.
STRICT_TOLERANCE_PERCENT = 0.5

# Looser band used only for "barely passing" style warnings, never for auto-fix
INFORMATIONAL_TOLERANCE_PERCENT = 2.0

# Differences below this are float noise, not a measurable deviation
MEASURABLE_DIFFERENCE_PERCENT = 0.001

# Seconds to wait for an asset to download and decode
ASSET_LOAD_TIMEOUT = 10.0

# Smallest width/height a design may have, in print pixels
MIN_DESIGN_SIZE = 30

# Share of the print area a freshly dropped design occupies
DEFAULT_FIT_FRACTION = 0.7

# Nominal canvas size on desktop (render pixels)
CANVAS_MAX_SIZE = 450
CANVAS_MIN_SIZE = 300

# Responsive canvas
MOBILE_BREAKPOINT = 768
MOBILE_CANVAS_PADDING = 32
ROTATE_HINT_FACTOR = 1.5
MIN_USABLE_SCALE = 0.05

# Zoom, in percent
ZOOM_MIN = 50
ZOOM_MAX = 200
ZOOM_STEP = 10

# Resize handle hit area around a selected design (render pixels)
HANDLE_SIZE = 8

# Quick-size presets offered by the position panel
QUICK_SIZES = {
    "25%": 0.25,
    "50%": 0.5,
    "75%": 0.75,
    "100%": 1.0,
}

# Print area share thresholds for preflight size warnings
SMALL_DESIGN_SHARE = 0.1
LARGE_DESIGN_SHARE = 0.8
