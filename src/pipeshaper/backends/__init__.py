from .base import RuleMatch, ShaperBackend
from .ipfw import IpfwBackend

__all__ = ["RuleMatch", "ShaperBackend", "IpfwBackend"]
