from .config import GentxConfig
from .workflow import GentxResult, run_gentx, sign_gentx

__all__ = [
    "GentxConfig",
    "GentxResult",
    "run_gentx",
    "sign_gentx",
]
