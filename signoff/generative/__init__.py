from signoff.generative.factory import RescuerFactory
from signoff.generative.rescuer import IdentifierRescuer

__all__ = ["IdentifierRescuer", "RescuerFactory"]
