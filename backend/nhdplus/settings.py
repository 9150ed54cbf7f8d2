import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# NHDPlus geoserver (WFS) and Network-Linked Data Index endpoints
NHDPLUS_WFS_URL = os.getenv(
    "NHDPLUS_WFS_URL", "https://cida.usgs.gov/nwc/geoserver/nhdplus/ows"
)
NLDI_PROD_URL = os.getenv("NLDI_PROD_URL", "https://api.water.usgs.gov/nldi")
NLDI_TEST_URL = os.getenv(
    "NLDI_TEST_URL", "https://labs-beta.waterdata.usgs.gov/api/nldi"
)

NHDPLUS_TIMEOUT = int(os.getenv("NHDPLUS_TIMEOUT_S", "30"))
RETRY_ATTEMPTS = int(os.getenv("NHDPLUS_RETRY_ATTEMPTS", "3"))
RETRY_MAX_WAIT = int(os.getenv("NHDPLUS_RETRY_MAX_WAIT", "60"))

# Offset (degrees) used to turn a point into a tiny bbox for catchment lookup
POINT_QUERY_EPSILON = float(os.getenv("POINT_QUERY_EPSILON", "0.00001"))

MAX_IDS_PER_REQUEST = int(os.getenv("MAX_IDS_PER_REQUEST", "1000"))

NLDI_TIERS = {
    "prod": NLDI_PROD_URL,
    "test": NLDI_TEST_URL,
}
