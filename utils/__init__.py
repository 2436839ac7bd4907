"""WeakScan Utils"""
from utils.logger     import get_logger, set_level, log
from utils.validators import validate_target, is_mac, is_singleton_address
from utils.constants  import TaskState, ScopeType, MAX_CONCURRENT_TASKS
from utils.config     import Settings, ConfigError, load_settings
__all__ = ["get_logger", "set_level", "log", "validate_target", "is_mac",
           "is_singleton_address", "TaskState", "ScopeType",
           "MAX_CONCURRENT_TASKS", "Settings", "ConfigError", "load_settings"]
