# Server settings. Values may be overridden with environment variables.
# Cache behaviour (images dir, engine, extensions...) is configured through
# derivatives.config.CacheConfig.from_env().
import os

# Port and server adapter passed to bottle.run
PORT = int(os.getenv('PORT', '13337'))
SERVER = os.getenv('SERVER', 'auto')
DEBUG_APP = os.getenv('DEBUG_APP', 'false').lower() in ('1', 'true', 'yes')

LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG' if DEBUG_APP else 'INFO')
LOG_FILE = os.getenv('LOG_FILE', 'app.log')

# Source image records
SQL_USER = os.getenv('SQL_USER', 'derivatives')
SQL_PASSWORD = os.getenv('SQL_PASSWORD', '')
SQL_HOST = os.getenv('SQL_HOST', 'localhost')
SQL_PORT = int(os.getenv('SQL_PORT', '3306'))
SQL_DATABASE = os.getenv('SQL_DATABASE', 'derivatives')
SQL_POOL_SIZE = int(os.getenv('SQL_POOL_SIZE', '8'))
