"""
Configuration subsystem for Rankboard.

Static vs Dynamic Configuration
-------------------------------
**Static (Config):**
- Loaded from environment variables (and `.env`) at import
- Includes: Redis URL and pool settings, logging flags, leaderboard defaults
- Changes require a restart

**Dynamic (ConfigManager):**
- Loaded from YAML files under `config/`
- Includes: Redis resilience, batch and health monitor tunables
- In-memory overrides via `ConfigManager.set()`

Usage
-----
```python
from rankboard.core.config import Config, ConfigManager

url = Config.REDIS_URL
threshold = ConfigManager.get("core.redis.resilience.circuit.failure_threshold", 5)
```
"""

from rankboard.core.config.config import Config, Environment
from rankboard.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigWriteError,
)
from rankboard.core.config.manager import ConfigManager, ConfigMetrics

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigMetrics",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigWriteError",
]
