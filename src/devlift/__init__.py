__version__ = "1.1.0"

from .config import load_config, validate_config
from .dag import build_graph, plan_steps, schedule
from .engine import ExecutionEngine, RunResult
from .model import Choice, Config, Step

__all__ = [
    "__version__",
    "load_config",
    "validate_config",
    "build_graph",
    "schedule",
    "plan_steps",
    "ExecutionEngine",
    "RunResult",
    "Choice",
    "Config",
    "Step",
]
