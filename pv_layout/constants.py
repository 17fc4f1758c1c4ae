# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.

# Metres per degree of latitude (and of longitude at the equator). Longitude
# degrees shrink with cos(latitude) of the roof being laid out.
METRES_PER_DEGREE = 111320

# Mean earth radius in metres, for great-circle distances:
EARTH_RADIUS_M = 6371008.8

# A panel is only accepted if at least this fraction of its area lies inside
# the roof polygon. Tolerates boundary approximation without admitting panels
# that mostly overhang the roof edge.
CONTAINMENT_THRESHOLD = 0.9

# Triangles of the roof triangulation larger than this fraction of the largest
# triangle have their centroids tried as grid anchors:
ANCHOR_TRIANGLE_FRACTION = 0.3

# ...but no more than this many of them:
MAX_ANCHOR_TRIANGLES = 3

# The roof bounding box is inset by this fraction of the smaller panel
# footprint dimension before gridding, so panels on the boundary are not
# lost to floating-point misses.
GRID_PADDING_FRACTION = 0.1

# Panels whose centres are closer than this fraction of the footprint
# width / height to an accepted panel are duplicates.
DEDUPE_FRACTION = 0.1

# Fractions of a footprint to shift grids grown from bounding-box corners:
CORNER_OFFSETS = (0.0, 0.25, 0.5, 0.75)

# Fractions of a footprint to shift grids grown from triangle centroids:
CENTROID_OFFSETS = (0.0, 0.5)

# Panels are aligned north/south whatever the roof azimuth:
PANEL_ROTATION = 0.0

# Panel orientations: landscape has the long edge running east/west.
LANDSCAPE = "landscape"
PORTRAIT = "portrait"

# Layout styles: a fixed orientation, or `auto` to use whichever orientation
# fits more panels (landscape on a tie):
AUTO = "auto"
LAYOUT_STYLES = (LANDSCAPE, PORTRAIT, AUTO)

# Default module: TS-BGT54(500)-G11 N-type monocrystalline bifacial panel.
DEFAULT_PANEL_MODEL = "TS-BGT54(500)-G11"
DEFAULT_PANEL_WIDTH_MM = 1134
DEFAULT_PANEL_LENGTH_MM = 1961
DEFAULT_PANEL_WATTAGE_W = 500
# Gap between panels horizontally, and vertically (for maintenance access):
DEFAULT_PANEL_SPACING_H_M = 0.05
DEFAULT_PANEL_SPACING_V_M = 0.1

# Env var which can point at a JSON file overriding the default panel spec:
PANEL_SPEC_ENV_VAR = "PV_LAYOUT_PANEL_SPEC"
