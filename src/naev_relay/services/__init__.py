from .directory_mem import InMemoryDirectory
from .dispatcher import Dispatcher
from .reaper import Reaper
from .relay_loop import RelayLoop, LoopState

__all__ = ["InMemoryDirectory", "Dispatcher", "Reaper", "RelayLoop", "LoopState"]
