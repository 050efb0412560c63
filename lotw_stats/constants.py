from pathlib import Path

from lotw_stats.version import VERSION

LOTW_URL = "https://lotw.arrl.org/lotwuser/lotwreport.adi"
USER_AGENT = f"lotw-stats/{VERSION}"

DEFAULT_DATA_DIR = Path("local-data")
DEFAULT_ADIF_FILE = "lotwQso.adif"
DEFAULT_SNAPSHOT_FILE = "lotwDxcc.json"

# Earliest QSO upload date asked for on a full download
DEFAULT_QSO_BEGIN_DATE = "2018-01-01"

DEFAULT_TIMEOUT_S = 60.0
DEFAULT_RETRIES = 3
# Doubles on every retry: 5s, 10s, ...
DEFAULT_RETRY_DELAY_S = 5.0

# Minimum minutes between two updates, 0 disables the check
DEFAULT_UPDATE_INTERVAL_MIN = 0.0

CONFIG_FILE_NAME = "lotw-stats.json"
DATA_PATH_ENV = "STATS_DATA_PATH"
USERNAME_ENV = "LOTW_USERNAME"
PASSWORD_ENV = "LOTW_PASSWORD"

# Header fields LoTW puts in its reports
NUMREC_FIELD = "APP_LoTW_NUMREC"
LAST_QSO_RX_FIELD = "APP_LoTW_LASTQSORX"
RXQSL_FIELD = "APP_LoTW_RXQSL"

# Marker LoTW puts after the last record
EOF_TAG = "APP_LoTW_EOF"
