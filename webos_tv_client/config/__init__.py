from .base import Config
from .context import ConfigContext
from .client_config import WebOsTvClientConfig, load_client_config, CONFIG_FILE_ENV_VAR, LOCATION_ENV_VAR
