# opstation/__init__.py

from .control import PIDController
from .guidance import GuidanceLoop, LoopState, TickResult
from .params import HARDWARE, SITL, GuidanceParams, PIDGains, Preset, preset_by_name
from .providers import PushProvider, TreeLookupProvider
from .state import ControlState
from .synchronizer import PoseSynchronizer

__all__ = [
    'PIDController',
    'GuidanceLoop', 'LoopState', 'TickResult',
    'GuidanceParams', 'PIDGains', 'Preset', 'SITL', 'HARDWARE', 'preset_by_name',
    'PushProvider', 'TreeLookupProvider',
    'ControlState',
    'PoseSynchronizer',
]
