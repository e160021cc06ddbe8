from .participant import Participant

__all__ = ["Participant"]
